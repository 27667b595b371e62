"""Benchmark runner for systematic debate experiments.

Reads experiment configs and runs many debates with varying parameters,
collecting aggregated metrics for comparison. Debates are independent of
one another and run concurrently up to ``concurrency`` at a time.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from data.config import ConfigurationError, DebateConfig
from orchestration.debate_manager import DebateManager, DebateResult

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkResult:
    """Aggregated results from one benchmark block."""

    name: str
    debates: list[DebateResult] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)

    def summarise(self) -> dict[str, Any]:
        n = len(self.debates)
        if not n:
            return {"name": self.name, "debates_run": 0, "failed": len(self.failures)}

        winners: dict[str, int] = {}
        for d in self.debates:
            key = d.winner or "unjudged"
            winners[key] = winners.get(key, 0) + 1

        def _avg(path: tuple[str, ...]) -> float:
            total = 0.0
            for d in self.debates:
                value: Any = d.metrics
                for key in path:
                    value = value[key]
                total += value or 0
            return round(total / n, 3)

        return {
            "name": self.name,
            "debates_run": n,
            "failed": len(self.failures),
            "winners": winners,
            "consensus_rate": round(
                sum(1 for d in self.debates if d.verdict and d.verdict.consensus) / n, 3
            ),
            "degraded_judging": sum(1 for d in self.debates if d.judging_degraded),
            "avg_relevance": _avg(("quality", "relevance")),
            "avg_diversity": _avg(("quality", "argument_diversity")),
            "avg_forced_acceptances": _avg(("process", "forced_acceptances")),
            "total_tokens": sum(d.metrics["process"]["total_tokens"] for d in self.debates),
        }


def expand_benchmark(cfg: dict[str, Any]) -> list[DebateConfig]:
    """Cross motions, strictness modes and repetitions into debate configs."""
    motions = cfg.get("motions", [])
    strictness = cfg.get("strictness", ["standard"])
    if isinstance(strictness, str):
        strictness = [strictness]
    repetitions = cfg.get("repetitions", 1)

    configs = []
    for motion, mode, _ in itertools.product(motions, strictness, range(repetitions)):
        configs.append(
            DebateConfig.from_dict({
                "motion": motion,
                "pro_model": cfg["pro_model"],
                "con_model": cfg["con_model"],
                "pro_persona": cfg.get("pro_persona"),
                "con_persona": cfg.get("con_persona"),
                "total_rounds": cfg.get("total_rounds", 3),
                "word_limit": cfg.get("word_limit", 500),
                "strictness": mode,
            })
        )
    return configs


class BenchmarkRunner:
    """Run a suite of debates defined in an experiment YAML config.

    Parameters
    ----------
    manager : DebateManager
        Shared by every run; it keeps no per-debate state.
    concurrency : int
        Upper bound on debates in flight at once.
    """

    def __init__(self, manager: DebateManager, concurrency: int = 2) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.manager = manager
        self.concurrency = concurrency

    async def run_from_config(self, config_path: str | Path) -> list[BenchmarkResult]:
        """Parse a YAML experiment config and execute all benchmarks."""
        with open(config_path) as f:
            cfg = yaml.safe_load(f) or {}

        results: list[BenchmarkResult] = []
        for bench_cfg in cfg.get("benchmarks", []):
            results.append(await self.run_benchmark(bench_cfg))
        return results

    async def run_benchmark(self, cfg: dict[str, Any]) -> BenchmarkResult:
        """Execute a single benchmark block."""
        name = cfg.get("name", "unnamed")
        result = BenchmarkResult(name=name)
        try:
            configs = expand_benchmark(cfg)
        except (ConfigurationError, KeyError) as exc:
            logger.error("Benchmark '%s' has an invalid config: %s", name, exc)
            result.failures.append({"motion": None, "error": str(exc)})
            return result

        logger.info("Benchmark '%s': %d run(s), concurrency %d", name, len(configs), self.concurrency)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(index: int, config: DebateConfig) -> None:
            async with semaphore:
                logger.info(
                    "[%d/%d] motion=%r strictness=%s",
                    index, len(configs), config.motion, config.strictness.value,
                )
                try:
                    result.debates.append(await self.manager.run_debate(config))
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Benchmark run failed: motion=%r", config.motion)
                    result.failures.append({"motion": config.motion, "error": str(exc)})

        await asyncio.gather(*(_one(i, c) for i, c in enumerate(configs, start=1)))
        return result
