import csv
import io
import logging
import html
import re
from datetime import date

import markdown

from planforge_model import PhaseData, PlanForgeError, TechniqueData, TextData

logger = logging.getLogger(__name__)

CSV_HEADERS = ['Type', 'Name', 'Description', 'Phase', 'Category', 'Tags',
               'How to Use', 'When to Use', 'Tools', 'Commands', 'Content']

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - Attack Plan</title>
    <style>
        body {{ font-family: sans-serif; line-height: 1.6; max-width: 800px; margin: 0 auto; padding: 20px; background-color: #111827; color: #f3f4f6; }}
        h1, h2, h3 {{ color: #00bfff; }}
        pre {{ background-color: #1f2937; color: #e5e7eb; padding: 12px; border-radius: 6px; border: 1px solid #374151; overflow-x: auto; }}
        code {{ font-family: 'Courier New', Consolas, monospace; }}
        table {{ border-collapse: collapse; width: 100%; }}
        th, td {{ border: 1px solid #374151; padding: 8px; text-align: left; }}
        @media print {{ body {{ max-width: none; margin: 0; padding: 15px; }} }}
    </style>
</head>
<body>
{body}
</body>
</html>
"""


class ExportError(PlanForgeError):
    """Raised for an export format that does not exist."""


def sorted_nodes(nodes):
    """Nodes in reading order: top to bottom, then left to right."""
    return sorted(nodes, key=lambda node: (node.position.y, node.position.x))


def export_filename(title, extension):
    """'My Plan' -> 'my-plan-attack-plan.<extension>'."""
    slug = re.sub(r"\s+", "-", (title or "untitled").strip()).lower()
    return f"{slug}-attack-plan.{extension}"


def _technique_markdown(technique: TechniqueData):
    lines = [f"### {technique.title or 'Technique'}", ""]
    lines += [technique.description or "No description", ""]
    lines += [f"**Phase:** {technique.phase or 'N/A'}", ""]
    lines += [f"**Category:** {technique.category or 'N/A'}", ""]
    if technique.tags:
        lines += [f"**Tags:** {', '.join(technique.tags)}", ""]
    if technique.how_to_use:
        lines += ["**How to Use:**", ""]
        lines += [f"{index}. {step}" for index, step in enumerate(technique.how_to_use, start=1)]
        lines.append("")
    if technique.when_to_use:
        lines += ["**When to Use:**", ""]
        lines += [f"- {item}" for item in technique.when_to_use]
        lines.append("")
    if technique.tools:
        tools = "`, `".join(technique.tools)
        lines += [f"**Tools:** `{tools}`", ""]
    if technique.commands:
        lines += ["**Commands:**", ""]
        for command in technique.commands:
            lines += ["```bash", command, "```", ""]
    return lines


def plan_to_markdown(plan, generated_on=None):
    """
    Renders the plan as a markdown document.

    Args:
        plan (PlanGraph): The plan to render.
        generated_on (datetime.date, optional): Date printed in the header; today by default.

    Returns:
        str: The markdown text.
    """
    generated_on = generated_on or date.today()
    lines = [f"# {plan.title}", "", plan.description or "", "",
             f"*Generated on {generated_on.isoformat()}*", "",
             "## Attack Plan Elements", ""]

    for node in sorted_nodes(plan.nodes):
        lines += _node_lines(node)
    return "\n".join(lines)


def _node_lines(node):
    payload = node.payload
    if isinstance(payload, PhaseData):
        return [f"### Phase: {payload.display_label or 'Phase'}", ""]
    if isinstance(payload, TechniqueData):
        return _technique_markdown(payload)
    if isinstance(payload, TextData):
        return ["### Note", "", payload.content, ""]
    return []


def node_markdown(node):
    """The markdown section one node contributes to a plan export."""
    return "\n".join(_node_lines(node))


def plan_to_csv(plan):
    """One row per node under a fixed header; every field is quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for node in sorted_nodes(plan.nodes):
        payload = node.payload
        if isinstance(payload, TechniqueData):
            writer.writerow([
                'technique', payload.title, payload.description, payload.phase, payload.category,
                '; '.join(payload.tags), '; '.join(payload.how_to_use), '; '.join(payload.when_to_use),
                '; '.join(payload.tools), '; '.join(payload.commands), '',
            ])
        elif isinstance(payload, PhaseData):
            writer.writerow(['phase', payload.name or payload.display_label, '', payload.name,
                             '', '', '', '', '', '', ''])
        elif isinstance(payload, TextData):
            writer.writerow(['text', 'Text Box', '', '', '', '', '', '', '', '', payload.content])
        else:
            writer.writerow([node.kind_name, '', '', '', '', '', '', '', '', '', ''])
    return buffer.getvalue()


def plan_to_html(plan, generated_on=None):
    """The markdown rendition converted to HTML and wrapped in a styled page."""
    body = markdown.markdown(plan_to_markdown(plan, generated_on), extensions=['fenced_code', 'tables'])
    return HTML_TEMPLATE.format(title=html.escape(plan.title or ""), body=body)


class Exporter:
    """
    Writes an attack plan to disk as markdown, CSV or HTML.

    Every export method returns a (success, error_message) tuple so the UI can
    report failures without catching anything itself.
    """

    FORMATS = {
        'markdown': ('md', plan_to_markdown),
        'csv': ('csv', plan_to_csv),
        'html': ('html', plan_to_html),
    }

    def render(self, plan, fmt):
        if fmt not in self.FORMATS:
            raise ExportError(f"Unknown export format '{fmt}'. Choose one of: {', '.join(self.FORMATS)}")
        _, renderer = self.FORMATS[fmt]
        return renderer(plan)

    def default_filename(self, plan, fmt):
        if fmt not in self.FORMATS:
            raise ExportError(f"Unknown export format '{fmt}'")
        return export_filename(plan.title, self.FORMATS[fmt][0])

    def export(self, plan, file_path, fmt):
        """
        Renders the plan in `fmt` and writes it to `file_path`.

        Args:
            plan (PlanGraph): The plan to export.
            file_path (str): The full path of the file to save.
            fmt (str): One of 'markdown', 'csv' or 'html'.

        Returns:
            tuple[bool, str | None]: A success flag and an error message if the
                                     file could not be written.

        Raises:
            ExportError: If `fmt` is not a known format.
        """
        content = self.render(plan, fmt)
        try:
            with open(file_path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
        except OSError as e:
            logger.error("Export to %s failed: %s", file_path, e)
            return False, str(e)
        logger.info("Exported plan '%s' as %s to %s", plan.title, fmt, file_path)
        return True, None
