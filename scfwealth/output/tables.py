"""
Regression table export for Table 3.

Renders fitted median regressions as stargazer-style plain text and as
LaTeX tabular environments:

- table3a: Panel A, FinLit score (0-3)
- table3b: Panel B, all Big Three correct
- table3_summary: both panels side by side with selected demographics
"""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

from scfwealth.model.median_regression import (
    LITERACY_LABELS,
    LITERACY_MEASURES,
    OUTCOME_LABELS,
    OUTCOMES,
    MedianRegressionModel,
    QuantRegResult,
)

logger = logging.getLogger(__name__)

STAR_THRESHOLDS = [(0.01, "***"), (0.05, "**"), (0.10, "*")]
STAR_NOTE = "*p<0.1; **p<0.05; ***p<0.01"

PANEL_TITLES = {
    "finlit": "Panel A: FinLit Index (0-3)",
    "finlit_3c": "Panel B: All Big Three Correct",
}

PANEL_FILES = {
    "finlit": "table3a",
    "finlit_3c": "table3b",
}

SUMMARY_TERMS = ["female", "black", "hispanic", "income100k"]

TERM_LABELS = {
    **LITERACY_LABELS,
    "female": "Female",
    "black": "Black",
    "hispanic": "Hispanic",
    "income100k": "Income ($100k)",
}


def significance_stars(pvalue: float) -> str:
    """Stars for a p-value: * p<0.10, ** p<0.05, *** p<0.01."""
    if pvalue is None or math.isnan(pvalue):
        return ""
    for threshold, stars in STAR_THRESHOLDS:
        if pvalue < threshold:
            return stars
    return ""


def _latex_escape(text: str) -> str:
    for char in ["\\", "&", "%", "$", "#", "_", "{", "}"]:
        replacement = r"\textbackslash{}" if char == "\\" else "\\" + char
        text = text.replace(char, replacement)
    return text


@dataclass
class TableColumn:
    """One model column; a column without a result reports why."""

    label: str
    result: QuantRegResult | None = None
    note: str = ""


@dataclass
class RegressionTable:
    """Coefficient table over several fitted models."""

    title: str
    columns: list[TableColumn]
    keep: list[str]
    covariate_labels: dict[str, str] = field(default_factory=dict)
    digits: int = 3

    def _format(self, value: float) -> str:
        return f"{value:,.{self.digits}f}"

    def cell(self, column: TableColumn, term: str) -> tuple[str, str]:
        """Coefficient (with stars) and standard error strings for one cell."""
        res = column.result
        if res is None or term not in res.params.index:
            return "", ""
        coef = res.params[term]
        se = res.std_errors[term]
        stars = significance_stars(res.pvalues[term])
        return f"{self._format(coef)}{stars}", f"({self._format(se)})"

    def rows(self) -> list[tuple[str, list[str]]]:
        """Body rows as (label, cells): coefficient then standard error per term."""
        body = []
        for term in self.keep:
            coefs, ses = [], []
            for column in self.columns:
                coef, se = self.cell(column, term)
                coefs.append(coef)
                ses.append(se)
            if not any(coefs):
                continue
            body.append((self.covariate_labels.get(term, term), coefs))
            body.append(("", ses))
        return body

    def stat_rows(self) -> list[tuple[str, list[str]]]:
        """Observations and pseudo R² rows."""
        nobs, r2 = [], []
        for column in self.columns:
            if column.result is None:
                nobs.append("")
                r2.append("")
            else:
                nobs.append(f"{column.result.nobs:,}")
                r2.append(self._format(column.result.pseudo_r2))
        return [("Observations", nobs), ("Pseudo R2", r2)]

    def notes(self) -> list[str]:
        """Footnotes for failed or non-converged columns."""
        notes = []
        for i, column in enumerate(self.columns, start=1):
            if column.result is None:
                notes.append(f"({i}) not estimated: {column.note}")
            elif not column.result.converged:
                notes.append(f"({i}) iteration limit reached")
        return notes

    def to_text(self) -> str:
        """Render as a plain text table."""
        headers = [c.label for c in self.columns]
        numbers = [f"({i})" for i in range(1, len(self.columns) + 1)]
        body = self.rows()
        stats = self.stat_rows()

        label_width = max(
            [len(label) for label, _ in body + stats] + [len("Note:")]
        ) + 2
        widths = []
        for i, header in enumerate(headers):
            column_cells = [cells[i] for _, cells in body + stats]
            widths.append(max([len(header)] + [len(c) for c in column_cells]) + 2)

        total = label_width + sum(widths)

        def line(label: str, cells: list[str]) -> str:
            return label.ljust(label_width) + "".join(
                c.center(w) for c, w in zip(cells, widths)
            )

        lines = [self.title, "=" * total]
        dep = "Dependent variable:"
        lines.append(" " * label_width + dep.center(total - label_width))
        lines.append(" " * label_width + "-" * (total - label_width))
        lines.append(line("", headers))
        lines.append(line("", numbers))
        lines.append("-" * total)
        for label, cells in body:
            lines.append(line(label, cells))
        lines.append("-" * total)
        for label, cells in stats:
            lines.append(line(label, cells))
        lines.append("=" * total)
        lines.append("Note:".ljust(label_width) + STAR_NOTE.rjust(total - label_width))
        for note in self.notes():
            lines.append(" " * label_width + note)

        return "\n".join(lines) + "\n"

    def to_latex(self) -> str:
        """Render as a LaTeX table."""
        n = len(self.columns)
        lines = [
            "\\begin{table}[!htbp] \\centering",
            f"  \\caption{{{_latex_escape(self.title)}}}",
            f"\\begin{{tabular}}{{@{{\\extracolsep{{5pt}}}}l{'c' * n}}}",
            "\\hline \\hline",
            f" & \\multicolumn{{{n}}}{{c}}{{Dependent variable:}} \\\\",
            f"\\cline{{2-{n + 1}}}",
            " & " + " & ".join(_latex_escape(c.label) for c in self.columns) + " \\\\",
            " & " + " & ".join(f"({i})" for i in range(1, n + 1)) + " \\\\",
            "\\hline",
        ]
        for label, cells in self.rows():
            tex_cells = [self._latex_cell(c) for c in cells]
            lines.append(f" {_latex_escape(label)} & " + " & ".join(tex_cells) + " \\\\")
        lines.append("\\hline")
        for label, cells in self.stat_rows():
            lines.append(f" {_latex_escape(label)} & " + " & ".join(cells) + " \\\\")
        lines.append("\\hline \\hline")
        lines.append(
            f"\\textit{{Note:}} & \\multicolumn{{{n}}}{{r}}"
            "{$^{*}$p$<$0.1; $^{**}$p$<$0.05; $^{***}$p$<$0.01} \\\\"
        )
        for note in self.notes():
            lines.append(f" & \\multicolumn{{{n}}}{{r}}{{{_latex_escape(note)}}} \\\\")
        lines.append("\\end{tabular}")
        lines.append("\\end{table}")
        return "\n".join(lines) + "\n"

    def _latex_cell(self, cell: str) -> str:
        # Math mode so negative values get a minus sign
        if not cell:
            return ""
        stars = cell[len(cell.rstrip("*")):]
        value = cell.rstrip("*").replace(",", "{,}")
        if stars:
            return f"${value}^{{{stars}}}$"
        return f"${value}$"

    def write(self, output_dir: Path, stem: str) -> list[Path]:
        """Write .txt and .tex versions of the table."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = []
        for suffix, content in [(".txt", self.to_text()), (".tex", self.to_latex())]:
            path = output_dir / f"{stem}{suffix}"
            path.write_text(content, encoding="utf-8")
            paths.append(path)
            logger.info(f"Wrote {path}")
        return paths


def _column(model: MedianRegressionModel, outcome: str, literacy: str, label: str) -> TableColumn:
    name = f"{outcome}__{literacy}"
    if name in model.results:
        return TableColumn(label=label, result=model.results[name])
    if name in model.failures:
        return TableColumn(label=label, note=model.failures[name].message)
    return TableColumn(label=label, note="not fitted")


def panel_table(
    model: MedianRegressionModel,
    literacy: str,
    digits: int = 3,
) -> RegressionTable:
    """Table for one literacy measure across the four outcomes."""
    columns = [_column(model, o, literacy, OUTCOME_LABELS[o]) for o in OUTCOMES]
    return RegressionTable(
        title=PANEL_TITLES.get(literacy, literacy),
        columns=columns,
        keep=[literacy],
        covariate_labels=TERM_LABELS,
        digits=digits,
    )


def summary_table(model: MedianRegressionModel, digits: int = 3) -> RegressionTable:
    """Both panels side by side with the literacy and selected demographic terms."""
    columns = []
    for literacy, panel in LITERACY_MEASURES.items():
        for outcome in OUTCOMES:
            label = f"{OUTCOME_LABELS[outcome]} ({panel})"
            columns.append(_column(model, outcome, literacy, label))
    return RegressionTable(
        title="Table 3: Median Regressions of Wealth on Financial Literacy",
        columns=columns,
        keep=list(LITERACY_MEASURES) + SUMMARY_TERMS,
        covariate_labels=TERM_LABELS,
        digits=digits,
    )


def write_tables(
    model: MedianRegressionModel,
    output_dir: Path,
    digits: int = 3,
) -> list[Path]:
    """
    Write both panel tables and the combined summary.

    Args:
        model: Fitted median regression model
        output_dir: Destination directory (created if needed)
        digits: Decimal places

    Returns:
        Paths of the written files
    """
    paths = []
    for literacy, stem in PANEL_FILES.items():
        paths.extend(panel_table(model, literacy, digits).write(output_dir, stem))
    paths.extend(summary_table(model, digits).write(output_dir, "table3_summary"))
    return paths
