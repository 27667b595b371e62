"""Debate visualization – charts and transcript exports.

Generates matplotlib charts for word counts, verification outcomes and
judge rubric scores, and exports transcripts as text, markdown or JSON.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import matplotlib

matplotlib.use("Agg")  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from data.models import EvaluationRecord
from data.state import Side, Turn, Verdict, VerificationLogEntry

logger = logging.getLogger(__name__)

_SIDE_COLOURS: dict[Side, str] = {
    Side.PRO: "#4CAF50",
    Side.CON: "#F44336",
}

_VERDICT_COLOURS: dict[Verdict, str] = {
    Verdict.SUPPORTED: "#2196F3",
    Verdict.CONTRADICTED: "#F44336",
    Verdict.INDETERMINATE: "#9E9E9E",
}

EXPORT_FORMATS = ("txt", "md", "json")


class DebateVisualizer:
    """Generate charts and reports from debate data."""

    def __init__(self, output_dir: str | Path = "viz/output") -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_all(
        self,
        debate_id: str,
        motion: str,
        turns: Sequence[Turn],
        entries: Sequence[VerificationLogEntry] = (),
        evaluations: Sequence[EvaluationRecord] = (),
    ) -> list[Path]:
        """Generate every chart that has data plus a text transcript."""
        paths = [self.plot_word_counts(debate_id, turns)]
        if entries:
            paths.append(self.plot_verifications(debate_id, entries))
        if evaluations:
            paths.append(self.plot_rubric_scores(debate_id, evaluations))
        paths.append(self.export_transcript(debate_id, motion, turns, evaluations))
        return paths

    # ------------------------------------------------------------------
    # Charts
    # ------------------------------------------------------------------

    def plot_word_counts(self, debate_id: str, turns: Sequence[Turn]) -> Path:
        """Line chart of statement length per round for each side."""
        fig, ax = plt.subplots(figsize=(10, 4))

        for side in Side:
            own = sorted((t for t in turns if t.side is side), key=lambda t: t.round_number)
            ax.plot(
                [t.round_number for t in own],
                [t.word_count for t in own],
                "o-",
                label=side.value,
                color=_SIDE_COLOURS[side],
                markersize=5,
            )
            for t in own:
                if t.regenerations:
                    ax.annotate(
                        f"x{t.regenerations}",
                        (t.round_number, t.word_count),
                        textcoords="offset points",
                        xytext=(0, 6),
                        ha="center",
                        fontsize=8,
                    )

        ax.set_xlabel("Round")
        ax.set_ylabel("Words")
        ax.set_title(f"Debate {debate_id[:8]} – Statement Length")
        ax.legend()
        ax.xaxis.set_major_locator(ticker.MaxNLocator(integer=True))
        plt.tight_layout()
        return self._save(fig, debate_id, "words")

    def plot_verifications(
        self, debate_id: str, entries: Sequence[VerificationLogEntry]
    ) -> Path:
        """Stacked bar chart of verdicts per side."""
        sides = list(Side)
        fig, ax = plt.subplots(figsize=(6, 4))
        bottom = [0] * len(sides)

        for verdict in Verdict:
            values = [
                sum(1 for e in entries if e.side is side and e.result.verdict is verdict)
                for side in sides
            ]
            ax.bar(
                [s.value for s in sides],
                values,
                bottom=bottom,
                label=verdict.value,
                color=_VERDICT_COLOURS[verdict],
            )
            bottom = [b + v for b, v in zip(bottom, values)]

        ax.set_ylabel("Assertions")
        ax.set_title(f"Debate {debate_id[:8]} – Fact-Check Verdicts")
        ax.legend()
        ax.yaxis.set_major_locator(ticker.MaxNLocator(integer=True))
        plt.tight_layout()
        return self._save(fig, debate_id, "verifications")

    def plot_rubric_scores(
        self, debate_id: str, evaluations: Sequence[EvaluationRecord]
    ) -> Path:
        """Grouped bar chart of rubric scores for each judge pass."""
        rubric = ["coherence", "rebuttal_strength", "factual_grounding"]
        width = 0.8 / max(len(evaluations), 1)

        fig, ax = plt.subplots(figsize=(8, 4))
        for i, ev in enumerate(evaluations):
            offsets = [x + i * width for x in range(len(rubric))]
            label = f"{ev.pass_name} ({ev.winner})"
            if ev.parse_failed:
                label += " *default*"
            ax.bar(offsets, [getattr(ev, r) for r in rubric], width, label=label)

        ax.set_xticks([x + width * (len(evaluations) - 1) / 2 for x in range(len(rubric))])
        ax.set_xticklabels([r.replace("_", " ").title() for r in rubric])
        ax.set_ylim(0, 10)
        ax.set_ylabel("Score")
        ax.set_title(f"Debate {debate_id[:8]} – Judge Rubric Scores")
        ax.legend(fontsize=8)
        plt.tight_layout()
        return self._save(fig, debate_id, "rubric")

    def _save(self, fig: Any, debate_id: str, suffix: str) -> Path:
        path = self.output_dir / f"debate_{debate_id}_{suffix}.png"
        fig.savefig(path, dpi=150)
        plt.close(fig)
        logger.info("Saved %s", path)
        return path

    # ------------------------------------------------------------------
    # Transcript export
    # ------------------------------------------------------------------

    def export_transcript(
        self,
        debate_id: str,
        motion: str,
        turns: Sequence[Turn],
        evaluations: Sequence[EvaluationRecord] = (),
        fmt: str = "txt",
    ) -> Path:
        """Write the transcript in *fmt* (``txt``, ``md`` or ``json``)."""
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unknown export format {fmt!r}. Choose from {EXPORT_FORMATS}")
        ordered = sorted(turns, key=lambda t: (t.round_number, t.side is not Side.PRO))
        if fmt == "json":
            body = json.dumps(
                {
                    "debate_id": debate_id,
                    "motion": motion,
                    "turns": [t.to_dict() for t in ordered],
                    "evaluations": [e.model_dump(mode="json") for e in evaluations],
                },
                indent=2,
            )
        elif fmt == "md":
            body = render_markdown(motion, ordered, evaluations)
        else:
            body = render_text(debate_id, motion, ordered)

        path = self.output_dir / f"debate_{debate_id}_transcript.{fmt}"
        path.write_text(body, encoding="utf-8")
        logger.info("Saved %s", path)
        return path


def render_text(debate_id: str, motion: str, turns: Sequence[Turn]) -> str:
    lines = [
        "=" * 72,
        f"  DEBATE {debate_id} TRANSCRIPT",
        f"  Motion: {motion}",
        "=" * 72,
        "",
    ]
    current_round = -1
    for t in turns:
        if t.round_number != current_round:
            current_round = t.round_number
            lines.append(f"--- Round {current_round} {'─' * 50}")
        flags = f" | regenerated {t.regenerations}x" if t.regenerations else ""
        lines.append(f"  [{t.side.value.upper()}] ({t.model_id})")
        lines.append(
            f"  Words: {t.word_count} | Verified: {t.verifications_passed} "
            f"supported / {t.verifications_failed} contradicted{flags}"
        )
        lines.append("")
        for paragraph in t.statement.split("\n"):
            lines.append(f"    {paragraph}")
        lines.append("")

    lines.append("=" * 72)
    lines.append("  END OF TRANSCRIPT")
    lines.append("=" * 72)
    return "\n".join(lines)


def render_markdown(
    motion: str, turns: Sequence[Turn], evaluations: Sequence[EvaluationRecord] = ()
) -> str:
    lines = [f"# {motion}", ""]
    current_round = -1
    for t in turns:
        if t.round_number != current_round:
            current_round = t.round_number
            lines.extend([f"## Round {current_round}", ""])
        lines.extend([f"### {t.side.value.upper()} ({t.model_id})", "", t.statement, ""])
        if t.verifications_passed or t.verifications_failed:
            lines.extend([
                f"_Fact check: {t.verifications_passed} supported, "
                f"{t.verifications_failed} contradicted_",
                "",
            ])

    if evaluations:
        lines.extend([
            "## Judgement",
            "",
            "| Pass | Model | Winner | Coherence | Rebuttal | Factual |",
            "|------|-------|--------|-----------|----------|---------|",
        ])
        for e in evaluations:
            lines.append(
                f"| {e.pass_name} | {e.judge_model} | {e.winner} | {e.coherence:g} | "
                f"{e.rebuttal_strength:g} | {e.factual_grounding:g} |"
            )
        lines.append("")
    return "\n".join(lines)
