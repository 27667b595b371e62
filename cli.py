#!/usr/bin/env python3
"""Command-line interface for the debate arena.

Usage examples:
    python cli.py debate --motion "AI development should be regulated" --pro gpt-4o --con claude-sonnet
    python cli.py debate --motion "..." --pro gpt-4o --con command-r --strictness strict --rounds 2
    python cli.py resume --debate-id 3f2a...
    python cli.py judge --debate-id 3f2a...
    python cli.py show --debate-id 3f2a... --export md --charts
    python cli.py run-experiment --benchmark-config config/experiment.yaml
    python cli.py list-debates
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import click
import yaml

from agents import (
    Debater,
    FactChecker,
    GenerationError,
    GenerationFailed,
    Judge,
    LLMClient,
    ModelConfig,
    create_evidence_source,
    create_provider,
)
from data.config import ConfigurationError, DebateConfig, DebatePolicy, Persona
from data.database import DebateDatabase
from data.state import Side, StrictnessMode, Turn
from data.store import DebateNotFound, DebateStore, MemoryStore, evaluation_records
from orchestration.debate_manager import DebateManager, DebateResult
from viz.visualize import EXPORT_FORMATS, DebateVisualizer


# ---------------------------------------------------------------------------
# Live debate display
# ---------------------------------------------------------------------------

_SIDE_STYLES: dict[Side, tuple[str, str]] = {
    # side -> (label, ANSI colour code)
    Side.PRO: ("PRO", "\033[1;34m"),  # bold blue
    Side.CON: ("CON", "\033[1;31m"),  # bold red
}
# Failures a run reports as a CLI error rather than a traceback.
_RUN_ERRORS = (ConfigurationError, GenerationFailed, GenerationError)

_RESET = "\033[0m"
_DIM = "\033[2m"


def _print_turn(turn: Turn) -> None:
    """Pretty-print one accepted turn to the terminal."""
    label, colour = _SIDE_STYLES[turn.side]

    click.echo(f"\n{colour}{'─' * 60}")
    click.echo(f"  [{label}]  Round {turn.round_number}  •  {turn.model_id}")
    click.echo(f"{'─' * 60}{_RESET}")

    for paragraph in turn.statement.strip().split("\n"):
        click.echo(f"  {paragraph}")

    footer = (
        f"{turn.word_count} words  •  {turn.verifications_passed} supported / "
        f"{turn.verifications_failed} contradicted"
    )
    if turn.regenerations:
        footer += f"  •  regenerated {turn.regenerations}x"
    click.echo(f"{_DIM}  [{footer}]{_RESET}")


def _print_result(result: DebateResult) -> None:
    click.echo(f"\n{'=' * 60}")
    click.echo(f"  DEBATE COMPLETE – {result.debate_id}")
    click.echo(f"{'=' * 60}")
    click.echo(f"  Status    : {result.status.value}")
    click.echo(f"  Turns     : {len(result.turns)}")
    click.echo(f"  Tokens    : {result.metrics['process']['total_tokens']}")

    if result.verdict is not None:
        v = result.verdict
        click.echo(f"  Winner    : {v.final_winner.value}")
        click.echo(f"  Consensus : {'yes' if v.consensus else 'no'}")
        if v.tiebreaker_used:
            click.echo(f"  Tiebreaker: {v.tiebreaker.judge_model}")  # type: ignore[union-attr]
    if result.judging_degraded:
        click.echo("  Judging degraded: one or more judge passes fell back to a default")

    click.echo()
    click.echo("  Per-side:")
    for side, m in result.metrics["sides"].items():
        click.echo(
            f"    {side:4s}: {m['turns']} turns, avg {m['avg_word_count']} words, "
            f"factuality {m['factuality'] if m['factuality'] is not None else 'n/a'}"
        )

    if result.warnings:
        click.echo("\n  Warnings:")
        for w in result.warnings:
            click.echo(f"    - {w}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(config_path: str = "config/default.yaml") -> dict[str, Any]:
    """Load and return the YAML config."""
    p = Path(config_path)
    if not p.exists():
        click.echo(f"Config not found: {p}. Using defaults.", err=True)
        return {}
    with open(p) as f:
        return yaml.safe_load(f) or {}


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _db_path(cfg: dict[str, Any]) -> str:
    return cfg.get("database", {}).get("path", "data/debates.db")


def _policy(cfg: dict[str, Any]) -> DebatePolicy:
    return DebatePolicy.model_validate(cfg.get("policy", {}))


def _personas(cfg: dict[str, Any]) -> dict[str, Persona]:
    return {p["id"]: Persona.model_validate(p) for p in cfg.get("personas", [])}


def _build_client(cfg: dict[str, Any], model_ids: Iterable[str | None]) -> LLMClient:
    """Register a provider for every model id the run will touch.

    Model ids are resolved through the ``models`` section; an id missing
    there is treated as an OpenAI model of the same name.
    """
    api_cfg = cfg.get("api", {})
    model_cfgs = cfg.get("models", {})
    client = LLMClient()

    for model_id in dict.fromkeys(m for m in model_ids if m):
        mcfg = model_cfgs.get(model_id, {})
        provider_name = mcfg.get("provider", "openai")
        provider_kwargs: dict[str, Any] = {
            "model": mcfg.get("model", model_id),
            "timeout": api_cfg.get("timeout", 60),
            "max_retries": api_cfg.get("max_retries", 3),
        }
        key_env = api_cfg.get(provider_name, {}).get("api_key_env")
        if key_env:
            provider_kwargs["api_key_env"] = key_env
        try:
            client.register(model_id, create_provider(provider_name, **provider_kwargs))
        except ValueError as exc:
            raise click.ClickException(f"Cannot set up model {model_id!r}: {exc}") from exc
    return client


def _auxiliary_models(cfg: dict[str, Any]) -> list[str | None]:
    fc = cfg.get("fact_check", {})
    judge = cfg.get("judge", {})
    return [
        fc.get("model"),
        fc.get("verdict_model"),
        judge.get("model"),
        judge.get("tiebreaker"),
    ]


def _build_judge(cfg: dict[str, Any], client: LLMClient, policy: DebatePolicy) -> Judge | None:
    jcfg = cfg.get("judge", {})
    if not jcfg.get("model"):
        return None
    tiebreaker = None
    if jcfg.get("tiebreaker"):
        tiebreaker = ModelConfig(
            model_id=jcfg["tiebreaker"],
            temperature=jcfg.get("tiebreaker_temperature", 0.2),
            max_tokens=jcfg.get("max_tokens", 2000),
        )
    return Judge(
        client,
        ModelConfig(
            model_id=jcfg["model"],
            temperature=jcfg.get("temperature", 0.3),
            max_tokens=jcfg.get("max_tokens", 2000),
        ),
        tiebreaker=tiebreaker,
        policy=policy,
    )


def _build_manager(
    cfg: dict[str, Any],
    client: LLMClient,
    store: DebateStore,
    *,
    judge: bool = True,
    live: bool = True,
) -> DebateManager:
    policy = _policy(cfg)
    personas = _personas(cfg)
    dcfg = cfg.get("debater", {})
    fcfg = cfg.get("fact_check", {})

    fc_model = fcfg.get("model") or next(iter(client.model_ids), "")
    evidence_name = fcfg.get("evidence", "none")
    evidence_kwargs = {"max_results": policy.evidence_results} if evidence_name == "tavily" else {}

    fact_checker = FactChecker(
        client,
        extraction_config=ModelConfig(
            model_id=fc_model,
            temperature=fcfg.get("temperature", 0.3),
            max_tokens=fcfg.get("max_tokens", 1000),
        ),
        verdict_config=ModelConfig(
            model_id=fcfg.get("verdict_model") or fc_model,
            temperature=fcfg.get("verdict_temperature", 0.2),
            max_tokens=fcfg.get("verdict_max_tokens", 500),
        ),
        evidence=create_evidence_source(evidence_name, **evidence_kwargs),
        policy=policy,
    )
    debater = Debater(
        client,
        personas=personas,
        policy=policy,
        temperature=dcfg.get("temperature", 0.7),
        max_tokens=dcfg.get("max_tokens", 2000),
    )
    return DebateManager(
        client,
        debater=debater,
        fact_checker=fact_checker,
        store=store,
        judge=_build_judge(cfg, client, policy) if judge else None,
        policy=policy,
        personas=personas,
        on_turn=_print_turn if live else None,
    )


async def _open_db(cfg: dict[str, Any]) -> DebateDatabase:
    db = DebateDatabase(_db_path(cfg))
    await db.connect()
    return db


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", default="config/default.yaml", help="Path to YAML config")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """Debate Arena – run fact-checked, judged LLM debates from the command line."""
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = _load_config(config)
    ctx.obj["config_path"] = config


# ---- debate ---------------------------------------------------------------

@cli.command()
@click.option("--motion", required=True, help="Motion under debate")
@click.option("--pro", "pro_model", required=True, help="Model id arguing for the motion")
@click.option("--con", "con_model", required=True, help="Model id arguing against the motion")
@click.option("--pro-persona", default=None, help="Persona id for the pro side")
@click.option("--con-persona", default=None, help="Persona id for the con side")
@click.option("--rounds", type=int, default=None, help="Number of rounds (1-10)")
@click.option("--word-limit", type=int, default=None, help="Words per statement (200-1000)")
@click.option(
    "--strictness",
    type=click.Choice([m.value for m in StrictnessMode]),
    default=None,
    help="Fact-check strictness",
)
@click.option("--no-judge", is_flag=True, help="Skip judging the finished debate")
@click.option("--no-db", is_flag=True, help="Skip database persistence")
@click.option("--export", "export_fmt", type=click.Choice(EXPORT_FORMATS), default=None,
              help="Export the transcript in this format")
@click.option("--charts", is_flag=True, help="Save matplotlib charts")
@click.pass_context
def debate(
    ctx: click.Context,
    motion: str,
    pro_model: str,
    con_model: str,
    pro_persona: str | None,
    con_persona: str | None,
    rounds: int | None,
    word_limit: int | None,
    strictness: str | None,
    no_judge: bool,
    no_db: bool,
    export_fmt: str | None,
    charts: bool,
) -> None:
    """Run a new debate between two models."""
    cfg = ctx.obj["config"]
    defaults = cfg.get("debate", {})
    try:
        config = DebateConfig.from_dict({
            "motion": motion,
            "pro_model": pro_model,
            "con_model": con_model,
            "pro_persona": pro_persona,
            "con_persona": con_persona,
            "total_rounds": rounds or defaults.get("total_rounds", 3),
            "word_limit": word_limit or defaults.get("word_limit", 500),
            "strictness": strictness or defaults.get("strictness", "standard"),
        })
    except ConfigurationError as exc:
        raise click.ClickException(f"Invalid debate configuration:\n{exc}") from exc

    click.echo(f"\n\033[1m{'=' * 60}")
    click.echo(f"  MOTION: {motion}")
    click.echo(f"{'=' * 60}\033[0m")
    click.echo(f"  Pro       : {pro_model}")
    click.echo(f"  Con       : {con_model}")
    click.echo(f"  Rounds    : {config.total_rounds}")
    click.echo(f"  Strictness: {config.strictness.value}")

    client = _build_client(cfg, [pro_model, con_model, *_auxiliary_models(cfg)])

    async def _run() -> None:
        db = None if no_db else await _open_db(cfg)
        store: DebateStore = db if db is not None else MemoryStore()
        try:
            manager = _build_manager(cfg, client, store, judge=not no_judge)
            try:
                result = await manager.run_debate(config)
            except _RUN_ERRORS as exc:
                raise click.ClickException(str(exc)) from exc
            _print_result(result)

            if export_fmt or charts:
                viz = DebateVisualizer()
                evaluations = (
                    evaluation_records(result.debate_id, result.verdict) if result.verdict else []
                )
                paths = []
                if export_fmt:
                    paths.append(viz.export_transcript(
                        result.debate_id, result.motion, result.turns, evaluations, fmt=export_fmt
                    ))
                if charts:
                    paths.extend(viz.generate_all(
                        result.debate_id,
                        result.motion,
                        result.turns,
                        result.verification_log,
                        evaluations,
                    ))
                click.echo(f"\n  Outputs saved to: {viz.output_dir}/")
                for p in paths:
                    click.echo(f"    - {p.name}")
        finally:
            if db:
                await db.close()

    asyncio.run(_run())


# ---- resume ---------------------------------------------------------------

@cli.command()
@click.option("--debate-id", required=True, help="Debate to resume")
@click.option("--no-judge", is_flag=True, help="Skip judging the finished debate")
@click.pass_context
def resume(ctx: click.Context, debate_id: str, no_judge: bool) -> None:
    """Resume an interrupted debate from its last round boundary."""
    cfg = ctx.obj["config"]

    async def _run() -> None:
        db = await _open_db(cfg)
        try:
            record = await db.get_debate(debate_id)
            if record is None:
                click.echo(f"Debate {debate_id} not found.", err=True)
                return
            client = _build_client(
                cfg, [record.pro_model, record.con_model, *_auxiliary_models(cfg)]
            )
            manager = _build_manager(cfg, client, db, judge=not no_judge)
            try:
                result = await manager.resume_debate(debate_id)
            except _RUN_ERRORS as exc:
                raise click.ClickException(f"Cannot resume debate {debate_id}: {exc}") from exc
            _print_result(result)
        finally:
            await db.close()

    asyncio.run(_run())


# ---- judge ----------------------------------------------------------------

@cli.command()
@click.option("--debate-id", required=True, help="Completed debate to judge")
@click.pass_context
def judge(ctx: click.Context, debate_id: str) -> None:
    """(Re-)judge a stored debate with the configured judge."""
    cfg = ctx.obj["config"]
    if not cfg.get("judge", {}).get("model"):
        raise click.ClickException("No judge model configured (judge.model)")

    async def _run() -> None:
        db = await _open_db(cfg)
        try:
            try:
                state = await db.get_snapshot(debate_id)
            except DebateNotFound:
                click.echo(f"Debate {debate_id} not found.", err=True)
                return
            if not state.complete:
                click.echo(f"Debate {debate_id} has not completed.", err=True)
                return

            client = _build_client(cfg, _auxiliary_models(cfg))
            judge_agent = _build_judge(cfg, client, _policy(cfg))
            try:
                verdict = await judge_agent.evaluate_with_order_swap(  # type: ignore[union-attr]
                    state.motion, state.turns
                )
            except GenerationError as exc:
                raise click.ClickException(f"Judging debate {debate_id} failed: {exc}") from exc
            await db.save_verdict(debate_id, verdict)
            click.echo(json.dumps(verdict.to_dict(), indent=2))
        finally:
            await db.close()

    asyncio.run(_run())


# ---- show -----------------------------------------------------------------

@cli.command()
@click.option("--debate-id", required=True, help="Debate to show")
@click.option("--export", "export_fmt", type=click.Choice(EXPORT_FORMATS), default=None,
              help="Export the transcript in this format")
@click.option("--charts", is_flag=True, help="Save matplotlib charts")
@click.pass_context
def show(ctx: click.Context, debate_id: str, export_fmt: str | None, charts: bool) -> None:
    """Show a stored debate's transcript summary and verdict."""
    cfg = ctx.obj["config"]

    async def _run() -> None:
        db = await _open_db(cfg)
        try:
            record = await db.get_debate(debate_id)
            if record is None:
                click.echo(f"Debate {debate_id} not found.", err=True)
                return
            turns = [t.to_turn() for t in await db.get_turns(debate_id)]
            entries = [v.to_entry() for v in await db.get_verifications(debate_id)]
            evaluations = await db.get_evaluations(debate_id)
            stats = await db.get_debate_stats(debate_id)

            click.echo(f"Debate {record.id} [{record.status.value}]")
            click.echo(f"  Motion    : {record.motion}")
            click.echo(f"  Pro / Con : {record.pro_model} / {record.con_model}")
            click.echo(f"  Round     : {record.current_round} of {record.total_rounds}")
            click.echo(f"  Strictness: {record.strictness.value}")
            click.echo(f"  Winner    : {record.winner or '-'}")
            click.echo(f"  Turns     : {stats['total_turns']}")
            click.echo(f"  Tokens    : {stats['input_tokens']} in / {stats['output_tokens']} out")
            for verdict_name, count in stats["verdicts"].items():
                click.echo(f"    {verdict_name:15s}: {count}")
            for e in evaluations:
                flag = " (default)" if e.parse_failed else ""
                click.echo(f"  Judge {e.pass_name:10s}: {e.winner} by {e.judge_model}{flag}")

            viz = DebateVisualizer()
            paths = []
            if export_fmt:
                paths.append(viz.export_transcript(
                    record.id, record.motion, turns, evaluations, fmt=export_fmt
                ))
            if charts and turns:
                paths.extend(viz.generate_all(record.id, record.motion, turns, entries, evaluations))
            for p in paths:
                click.echo(f"  Saved {p}")
        finally:
            await db.close()

    asyncio.run(_run())


# ---- run-experiment -------------------------------------------------------

@cli.command("run-experiment")
@click.option(
    "--benchmark-config",
    "bench_config",
    default="config/experiment.yaml",
    help="Experiment config YAML",
)
@click.option("--concurrency", default=2, type=int, help="Debates to run at once")
@click.pass_context
def run_experiment(ctx: click.Context, bench_config: str, concurrency: int) -> None:
    """Run a benchmark experiment from a YAML config."""
    cfg = ctx.obj["config"]
    with open(bench_config) as f:
        bench = yaml.safe_load(f) or {}
    model_ids: list[str | None] = [*_auxiliary_models(cfg)]
    for b in bench.get("benchmarks", []):
        model_ids.extend([b.get("pro_model"), b.get("con_model")])
    client = _build_client(cfg, model_ids)

    async def _run() -> None:
        db = await _open_db(cfg)
        try:
            from experiments.benchmark import BenchmarkRunner

            manager = _build_manager(cfg, client, db, live=False)
            runner = BenchmarkRunner(manager, concurrency=concurrency)
            results = await runner.run_from_config(bench_config)

            click.echo(f"\n{'=' * 60}")
            click.echo("  EXPERIMENT RESULTS")
            click.echo(f"{'=' * 60}")
            for r in results:
                click.echo(f"\n  Benchmark: {r.name}")
                for k, v in r.summarise().items():
                    click.echo(f"    {k:25s}: {v}")
        finally:
            await db.close()

    asyncio.run(_run())


# ---- calibrate ------------------------------------------------------------

@cli.command()
@click.option("--gold", "gold_path", required=True, help="Gold-standard debates YAML")
@click.option("--threshold", default=0.8, type=float, help="Required agreement rate")
@click.pass_context
def calibrate(ctx: click.Context, gold_path: str, threshold: float) -> None:
    """Check the configured judge against human-graded debates."""
    from evaluation.calibration import JudgeCalibration, load_gold_standard

    cfg = ctx.obj["config"]
    if not cfg.get("judge", {}).get("model"):
        raise click.ClickException("No judge model configured (judge.model)")
    gold = load_gold_standard(gold_path)
    client = _build_client(cfg, _auxiliary_models(cfg))
    judge_agent = _build_judge(cfg, client, _policy(cfg))

    report = asyncio.run(JudgeCalibration(gold, threshold).validate(judge_agent))  # type: ignore[arg-type]
    click.echo(json.dumps(report.to_dict(), indent=2))
    if not report.passes_threshold:
        ctx.exit(1)


# ---- list-debates ---------------------------------------------------------

@cli.command("list-debates")
@click.option("--limit", default=20, type=int, help="Number of debates to list")
@click.pass_context
def list_debates(ctx: click.Context, limit: int) -> None:
    """List recent debates stored in the database."""
    cfg = ctx.obj["config"]

    async def _run() -> None:
        db = await _open_db(cfg)
        try:
            debates = await db.list_debates(limit=limit)
            if not debates:
                click.echo("No debates found.")
                return

            click.echo(f"{'ID':<32}  {'Status':<12} {'Round':<6} {'Winner':<7} {'Motion'}")
            click.echo(f"{'─' * 32}  {'─' * 12} {'─' * 6} {'─' * 7} {'─' * 40}")
            for d in debates:
                click.echo(
                    f"{d.id:<32}  {d.status.value:<12} "
                    f"{f'{d.current_round}/{d.total_rounds}':<6} "
                    f"{d.winner or '-':<7} {d.motion[:40]}"
                )
        finally:
            await db.close()

    asyncio.run(_run())


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
