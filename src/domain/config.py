"""Load engine parameters from a TOML file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import tomllib


@dataclass(frozen=True)
class TrueSkillParameters:
    initial_mu: float = 25.0
    initial_sigma: float = 8.333
    beta: float = 25.0 / 6.0
    tau: float = 25.0 / 300.0
    sigma_floor: float = 1.0
    min_cdf: float = 1e-12


@dataclass(frozen=True)
class InactivityParameters:
    enabled: bool = True
    decay_lambda: float = 0.35
    period_days: int = 7
    sigma0: float = 8.333
    change_epsilon: float = 0.001


@dataclass(frozen=True)
class MvpParameters:
    enabled: bool = True
    mu_bonus: float = 0.6
    sigma_multiplier: float = 1.0
    max_per_match: int = 2


@dataclass(frozen=True)
class DrawParameters:
    base_bonus: float = 0.2
    upset_bonus: float = 0.3
    upset_penalty: float = 0.2
    significant_probability: float = 0.65
    probability_sigma: float = 8.333


@dataclass(frozen=True)
class PairParameters:
    enabled: bool = True
    scale_same: float = 2.0
    scale_vs: float = 2.0
    cap: float = 0.8
    games_for_conf: int = 8
    half_life_weeks: float = 8.0
    decay_factor: float = 0.9
    min_same_games: int = 3
    min_vs_games: int = 3
    top_n: int = 3


@dataclass(frozen=True)
class BalanceParameters:
    synergy_enabled: bool = True
    weight_same: float = 0.6
    weight_vs: float = 0.4
    max_base_diff: float = 2.0
    two_team_iterations: int = 500
    three_team_iterations: int = 400
    target_objective: float = 1.0
    team_size: int = 8
    probability_sigma: float = 8.333


@dataclass(frozen=True)
class EngineConfig:
    """Complete configuration for one deployment of the engine."""

    name: str = "default"
    description: str | None = None
    file_path: Path | None = None
    round_robin_weight: float = 0.5
    trueskill: TrueSkillParameters = field(default_factory=TrueSkillParameters)
    inactivity: InactivityParameters = field(default_factory=InactivityParameters)
    mvp: MvpParameters = field(default_factory=MvpParameters)
    draw: DrawParameters = field(default_factory=DrawParameters)
    pairs: PairParameters = field(default_factory=PairParameters)
    balance: BalanceParameters = field(default_factory=BalanceParameters)

    def as_config_json(self) -> dict[str, Any]:
        return {
            "round_robin_weight": self.round_robin_weight,
            "initial_mu": self.trueskill.initial_mu,
            "initial_sigma": self.trueskill.initial_sigma,
            "beta": self.trueskill.beta,
            "tau": self.trueskill.tau,
            "sigma_floor": self.trueskill.sigma_floor,
            "min_cdf": self.trueskill.min_cdf,
            "idle_enabled": self.inactivity.enabled,
            "idle_lambda": self.inactivity.decay_lambda,
            "idle_period_days": self.inactivity.period_days,
            "sigma0": self.inactivity.sigma0,
            "idle_change_epsilon": self.inactivity.change_epsilon,
            "mvp_enabled": self.mvp.enabled,
            "mvp_mu_bonus": self.mvp.mu_bonus,
            "mvp_sigma_multiplier": self.mvp.sigma_multiplier,
            "mvp_max_per_match": self.mvp.max_per_match,
            "draw_base_bonus": self.draw.base_bonus,
            "draw_upset_bonus": self.draw.upset_bonus,
            "draw_upset_penalty": self.draw.upset_penalty,
            "draw_significant_probability": self.draw.significant_probability,
            "synergy_enabled": self.pairs.enabled,
            "pair_scale_same": self.pairs.scale_same,
            "pair_scale_vs": self.pairs.scale_vs,
            "pair_cap": self.pairs.cap,
            "pair_games_for_conf": self.pairs.games_for_conf,
            "pair_half_life_weeks": self.pairs.half_life_weeks,
            "pair_decay_factor": self.pairs.decay_factor,
            "pair_min_same_games": self.pairs.min_same_games,
            "pair_min_vs_games": self.pairs.min_vs_games,
            "synergy_weight_same": self.balance.weight_same,
            "synergy_weight_vs": self.balance.weight_vs,
            "max_base_diff": self.balance.max_base_diff,
            "two_team_iterations": self.balance.two_team_iterations,
            "three_team_iterations": self.balance.three_team_iterations,
            "target_objective": self.balance.target_objective,
            "team_size": self.balance.team_size,
        }


def load_engine_config(file_path: Path) -> EngineConfig:
    """Load and validate one engine TOML config file."""
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")
    if not file_path.is_file():
        raise ValueError(f"Config path is not a file: {file_path}")

    with file_path.open("rb") as file:
        raw = tomllib.load(file)

    system_raw = raw.get("system", {})
    trueskill_raw = raw.get("trueskill", {})
    inactivity_raw = raw.get("inactivity", {})
    mvp_raw = raw.get("mvp", {})
    draw_raw = raw.get("draw", {})
    synergy_raw = raw.get("synergy", {})
    pairs_raw = raw.get("pairs", {})
    balance_raw = raw.get("balance", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    round_robin_weight = float(system_raw.get("round_robin_weight", 0.5))
    if not 0.0 < round_robin_weight <= 1.0:
        raise ValueError(f"{file_path}: [system].round_robin_weight must be in (0, 1]")

    synergy_enabled = _parse_bool(
        synergy_raw.get("enabled", True),
        file_path=file_path,
        key="synergy.enabled",
    )

    trueskill = TrueSkillParameters(
        initial_mu=float(trueskill_raw.get("initial_mu", 25.0)),
        initial_sigma=float(trueskill_raw.get("initial_sigma", 8.333)),
        beta=float(trueskill_raw.get("beta", 25.0 / 6.0)),
        tau=float(trueskill_raw.get("tau", 25.0 / 300.0)),
        sigma_floor=float(trueskill_raw.get("sigma_floor", 1.0)),
        min_cdf=float(trueskill_raw.get("min_cdf", 1e-12)),
    )
    inactivity = InactivityParameters(
        enabled=_parse_bool(
            inactivity_raw.get("enabled", True),
            file_path=file_path,
            key="inactivity.enabled",
        ),
        decay_lambda=float(inactivity_raw.get("lambda", 0.35)),
        period_days=int(inactivity_raw.get("period_days", 7)),
        sigma0=float(inactivity_raw.get("sigma0", trueskill.initial_sigma)),
        change_epsilon=float(inactivity_raw.get("change_epsilon", 0.001)),
    )
    mvp = MvpParameters(
        enabled=_parse_bool(mvp_raw.get("enabled", True), file_path=file_path, key="mvp.enabled"),
        mu_bonus=float(mvp_raw.get("mu_bonus", 0.6)),
        sigma_multiplier=float(mvp_raw.get("sigma_multiplier", 1.0)),
        max_per_match=int(mvp_raw.get("max_per_match", 2)),
    )
    draw = DrawParameters(
        base_bonus=float(draw_raw.get("base_bonus", 0.2)),
        upset_bonus=float(draw_raw.get("upset_bonus", 0.3)),
        upset_penalty=float(draw_raw.get("upset_penalty", 0.2)),
        significant_probability=float(draw_raw.get("significant_probability", 0.65)),
        probability_sigma=float(draw_raw.get("probability_sigma", 8.333)),
    )
    pairs = PairParameters(
        enabled=synergy_enabled,
        scale_same=float(pairs_raw.get("scale_same", 2.0)),
        scale_vs=float(pairs_raw.get("scale_vs", 2.0)),
        cap=float(pairs_raw.get("cap", 0.8)),
        games_for_conf=int(pairs_raw.get("games_for_conf", 8)),
        half_life_weeks=float(pairs_raw.get("half_life_weeks", 8.0)),
        decay_factor=float(pairs_raw.get("decay_factor", 0.9)),
        min_same_games=int(pairs_raw.get("min_same_games", 3)),
        min_vs_games=int(pairs_raw.get("min_vs_games", 3)),
        top_n=int(pairs_raw.get("top_n", 3)),
    )
    balance = BalanceParameters(
        synergy_enabled=synergy_enabled,
        weight_same=float(synergy_raw.get("weight_same", 0.6)),
        weight_vs=float(synergy_raw.get("weight_vs", 0.4)),
        max_base_diff=float(synergy_raw.get("max_base_diff", 2.0)),
        two_team_iterations=int(balance_raw.get("two_team_iterations", 500)),
        three_team_iterations=int(balance_raw.get("three_team_iterations", 400)),
        target_objective=float(balance_raw.get("target_objective", 1.0)),
        team_size=int(balance_raw.get("team_size", 8)),
        probability_sigma=float(balance_raw.get("probability_sigma", 8.333)),
    )

    _validate_trueskill(file_path=file_path, parameters=trueskill)
    _validate_inactivity(file_path=file_path, parameters=inactivity, sigma_floor=trueskill.sigma_floor)
    _validate_mvp(file_path=file_path, parameters=mvp)
    _validate_draw(file_path=file_path, parameters=draw)
    _validate_pairs(file_path=file_path, parameters=pairs)
    _validate_balance(file_path=file_path, parameters=balance)

    return EngineConfig(
        name=name,
        description=description,
        file_path=file_path,
        round_robin_weight=round_robin_weight,
        trueskill=trueskill,
        inactivity=inactivity,
        mvp=mvp,
        draw=draw,
        pairs=pairs,
        balance=balance,
    )


def _parse_bool(value: Any, *, file_path: Path, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "1", "yes", "on"):
            return True
        if normalized in ("false", "0", "no", "off"):
            return False
    section, _, name = key.partition(".")
    raise ValueError(f"{file_path}: [{section}].{name} must be a boolean")


def _validate_trueskill(*, file_path: Path, parameters: TrueSkillParameters) -> None:
    if parameters.initial_sigma <= 0.0:
        raise ValueError(f"{file_path}: [trueskill].initial_sigma must be > 0")
    if parameters.beta <= 0.0:
        raise ValueError(f"{file_path}: [trueskill].beta must be > 0")
    if parameters.tau < 0.0:
        raise ValueError(f"{file_path}: [trueskill].tau must be >= 0")
    if parameters.sigma_floor <= 0.0:
        raise ValueError(f"{file_path}: [trueskill].sigma_floor must be > 0")
    if parameters.sigma_floor > parameters.initial_sigma:
        raise ValueError(f"{file_path}: [trueskill].sigma_floor must be <= initial_sigma")
    if not 0.0 < parameters.min_cdf < 1.0:
        raise ValueError(f"{file_path}: [trueskill].min_cdf must be in (0, 1)")


def _validate_inactivity(
    *,
    file_path: Path,
    parameters: InactivityParameters,
    sigma_floor: float,
) -> None:
    if parameters.decay_lambda <= 0.0:
        raise ValueError(f"{file_path}: [inactivity].lambda must be > 0")
    if parameters.period_days <= 0:
        raise ValueError(f"{file_path}: [inactivity].period_days must be > 0")
    if parameters.sigma0 < sigma_floor:
        raise ValueError(f"{file_path}: [inactivity].sigma0 must be >= [trueskill].sigma_floor")
    if parameters.change_epsilon < 0.0:
        raise ValueError(f"{file_path}: [inactivity].change_epsilon must be >= 0")


def _validate_mvp(*, file_path: Path, parameters: MvpParameters) -> None:
    if parameters.mu_bonus < 0.0:
        raise ValueError(f"{file_path}: [mvp].mu_bonus must be >= 0")
    if parameters.sigma_multiplier <= 0.0:
        raise ValueError(f"{file_path}: [mvp].sigma_multiplier must be > 0")
    if parameters.max_per_match < 0:
        raise ValueError(f"{file_path}: [mvp].max_per_match must be >= 0")


def _validate_draw(*, file_path: Path, parameters: DrawParameters) -> None:
    if not 0.5 <= parameters.significant_probability < 1.0:
        raise ValueError(f"{file_path}: [draw].significant_probability must be in [0.5, 1)")
    if parameters.upset_bonus < 0.0:
        raise ValueError(f"{file_path}: [draw].upset_bonus must be >= 0")
    if parameters.upset_penalty < 0.0:
        raise ValueError(f"{file_path}: [draw].upset_penalty must be >= 0")
    if parameters.probability_sigma <= 0.0:
        raise ValueError(f"{file_path}: [draw].probability_sigma must be > 0")


def _validate_pairs(*, file_path: Path, parameters: PairParameters) -> None:
    if parameters.scale_same <= 0.0:
        raise ValueError(f"{file_path}: [pairs].scale_same must be > 0")
    if parameters.scale_vs <= 0.0:
        raise ValueError(f"{file_path}: [pairs].scale_vs must be > 0")
    if parameters.cap <= 0.0:
        raise ValueError(f"{file_path}: [pairs].cap must be > 0")
    if parameters.games_for_conf <= 0:
        raise ValueError(f"{file_path}: [pairs].games_for_conf must be > 0")
    if parameters.half_life_weeks <= 0.0:
        raise ValueError(f"{file_path}: [pairs].half_life_weeks must be > 0")
    if not 0.0 < parameters.decay_factor <= 1.0:
        raise ValueError(f"{file_path}: [pairs].decay_factor must be in (0, 1]")
    if parameters.min_same_games < 0 or parameters.min_vs_games < 0:
        raise ValueError(f"{file_path}: [pairs].min_same_games/min_vs_games must be >= 0")
    if parameters.top_n <= 0:
        raise ValueError(f"{file_path}: [pairs].top_n must be > 0")


def _validate_balance(*, file_path: Path, parameters: BalanceParameters) -> None:
    if parameters.weight_same < 0.0 or parameters.weight_vs < 0.0:
        raise ValueError(f"{file_path}: [synergy].weight_same/weight_vs must be >= 0")
    if parameters.max_base_diff <= 0.0:
        raise ValueError(f"{file_path}: [synergy].max_base_diff must be > 0")
    if parameters.two_team_iterations < 0 or parameters.three_team_iterations < 0:
        raise ValueError(f"{file_path}: [balance] iteration budgets must be >= 0")
    if parameters.target_objective < 0.0:
        raise ValueError(f"{file_path}: [balance].target_objective must be >= 0")
    if parameters.team_size <= 0:
        raise ValueError(f"{file_path}: [balance].team_size must be > 0")
    if parameters.probability_sigma <= 0.0:
        raise ValueError(f"{file_path}: [balance].probability_sigma must be > 0")


__all__ = [
    "BalanceParameters",
    "DrawParameters",
    "EngineConfig",
    "InactivityParameters",
    "MvpParameters",
    "PairParameters",
    "TrueSkillParameters",
    "load_engine_config",
]
