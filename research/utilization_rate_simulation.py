import numpy as np
import matplotlib.pyplot as plt
from dataclasses import dataclass, field
from typing import List, Optional
import pandas as pd
from pathlib import Path
from datetime import datetime

from lending_model.src.constants import RATE_SCALE, SLOTS_PER_YEAR, WAD
from lending_model.src.instructions.reserve import init_reserve, refresh_reserve
from lending_model.src.math.decimal import Decimal
from lending_model.src.state.lending_market import LendingMarket
from lending_model.src.state.reserve import Reserve, ReserveCollateral, ReserveConfig, ReserveLiquidity

MARKET_PUBKEY = bytes([1]) * 32
MARKET_OWNER = bytes([2]) * 32

# Utilization is clamped between these so the curve's top segment stays visible
MIN_UTILIZATION = 0.0
MAX_UTILIZATION = 0.99


@dataclass
class CurveParams:
    """Three point borrow rate curve, all values in percent"""
    optimal_utilization_rate: int = 80
    min_borrow_rate: int = 0
    optimal_borrow_rate: int = 10
    max_borrow_rate: int = 100
    reserve_owner_fee_pct: int = 20

    def to_config(self) -> ReserveConfig:
        config = ReserveConfig(
            optimal_utilization_rate=self.optimal_utilization_rate,
            loan_to_value_ratio=50,
            liquidation_bonus=5,
            liquidation_threshold=55,
            min_borrow_rate=self.min_borrow_rate,
            optimal_borrow_rate=self.optimal_borrow_rate,
            max_borrow_rate=self.max_borrow_rate,
        )
        config.fees.reserve_owner_fee_wad = self.reserve_owner_fee_pct * WAD // 100
        return config

    def __str__(self):
        return (f"U*={self.optimal_utilization_rate}%, "
                f"rates {self.min_borrow_rate}/{self.optimal_borrow_rate}/{self.max_borrow_rate}%")


@dataclass
class SimulationParams:
    initial_utilization: float = 0.5
    utilization_volatility: float = 0.02
    simulation_days: int = 365
    steps_per_day: int = 24  # hourly steps
    total_liquidity: int = 1_000_000
    mint_decimals: int = 6
    price: float = 1.0
    total_mining_speed: int = 0  # mine tokens per slot
    kink_util_rate: float = 0.8
    random_seed: Optional[int] = None
    experiment_name: str = "default"
    curve: CurveParams = field(default_factory=CurveParams)

    @property
    def slots_per_step(self) -> int:
        return SLOTS_PER_YEAR // (365 * self.steps_per_day)


class UtilizationSimulation:
    """Drive a reserve through refresh_reserve along a random utilization path"""

    def __init__(self, params: SimulationParams):
        self.params = params
        self.rng = np.random.default_rng(params.random_seed)
        self.reserve = self._build_reserve()
        self.times: List[float] = []
        self.utilizations: List[float] = []
        self.borrow_rates: List[float] = []
        self.cumulative_rates: List[float] = []
        self.owner_unclaimed: List[float] = []
        self.l_token_indices: List[float] = []
        self.borrow_indices: List[float] = []

    def _build_reserve(self) -> Reserve:
        p = self.params
        scale = 10 ** p.mint_decimals
        market = LendingMarket.new(MARKET_OWNER, b"USD".ljust(32, b"\0"))
        reserve = init_reserve(
            Reserve(),
            0,
            market,
            MARKET_PUBKEY,
            ReserveLiquidity(mint_decimals=p.mint_decimals, market_price=self._price()),
            ReserveCollateral(),
            p.curve.to_config(),
            total_mining_speed=p.total_mining_speed,
            kink_util_rate=int(p.kink_util_rate * WAD),
        )
        reserve.deposit_liquidity(p.total_liquidity * scale)
        self._set_utilization(reserve, p.initial_utilization)
        return reserve

    def _price(self) -> Decimal:
        return Decimal.from_scaled_val(int(round(self.params.price * WAD)))

    @staticmethod
    def _set_utilization(reserve: Reserve, utilization: float) -> None:
        """Move liquidity between available and borrowed, keeping the total"""
        liquidity = reserve.liquidity
        total_wads = liquidity.available_amount * WAD + liquidity.borrowed_amount_wads.to_scaled_val()
        borrowed_wads = total_wads * int(round(utilization * 10_000)) // 10_000
        liquidity.borrowed_amount_wads = Decimal.from_scaled_val(borrowed_wads)
        liquidity.available_amount = (total_wads - borrowed_wads) // WAD

    def simulate(self) -> pd.DataFrame:
        p = self.params
        utilization = p.initial_utilization
        slot = 0
        total_steps = p.simulation_days * p.steps_per_day

        for step in range(total_steps):
            # Simulate borrowing activity as a clamped random walk
            utilization += self.rng.normal(0, p.utilization_volatility)
            utilization = float(np.clip(utilization, MIN_UTILIZATION, MAX_UTILIZATION))
            self._set_utilization(self.reserve, utilization)

            slot += p.slots_per_step
            self.reserve = refresh_reserve(self.reserve, slot, self._price())

            self.times.append((step + 1) / p.steps_per_day)
            self.utilizations.append(self.reserve.liquidity.utilization_rate().to_scaled_val() / RATE_SCALE)
            self.borrow_rates.append(self.reserve.current_borrow_rate().to_scaled_val() / RATE_SCALE)
            self.cumulative_rates.append(self.reserve.liquidity.cumulative_borrow_rate_wads.to_scaled_val() / WAD)
            self.owner_unclaimed.append(self.reserve.liquidity.owner_unclaimed.to_scaled_val() / WAD)
            self.l_token_indices.append(self.reserve.bonus.l_token_mining_index.to_scaled_val() / WAD)
            self.borrow_indices.append(self.reserve.bonus.borrow_mining_index.to_scaled_val() / WAD)

        return self.to_dataframe()

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            "day": self.times,
            "utilization": self.utilizations,
            "borrow_apr": self.borrow_rates,
            "cumulative_borrow_rate": self.cumulative_rates,
            "owner_unclaimed": self.owner_unclaimed,
            "l_token_mining_index": self.l_token_indices,
            "borrow_mining_index": self.borrow_indices,
        })

    def plot_results(self, output_root: Path = Path('research/results')) -> Path:
        output_dir = output_root / self.params.experiment_name
        output_dir.mkdir(parents=True, exist_ok=True)

        fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(12, 10))

        ax1.plot(self.times, np.array(self.utilizations) * 100, label='Utilization')
        ax1.axhline(y=self.params.curve.optimal_utilization_rate, color='r', linestyle='--', alpha=0.3)
        ax1.set_ylabel('Utilization (%)')
        ax1.set_title('Reserve Utilization Over Time')
        ax1.legend()
        ax1.grid(True)

        ax2.plot(self.times, np.array(self.borrow_rates) * 100, label='Borrow APR', color='orange')
        ax2.set_ylabel('Borrow APR (%)')
        ax2.set_title('Borrow Rate Over Time')
        ax2.legend()
        ax2.grid(True)

        ax3.plot(self.times, self.cumulative_rates, label='Cumulative Borrow Rate', color='green')
        ax3.set_ylabel('Cumulative Rate')
        ax3.set_xlabel('Time (days)')
        ax3.legend()
        ax3.grid(True)

        plt.tight_layout()

        plot_name = f"curve_{self.params.curve.optimal_utilization_rate}_{self.params.curve.max_borrow_rate}"
        if self.params.random_seed is not None:
            plot_name += f"_seed_{self.params.random_seed}"

        path = output_dir / f"{plot_name}.png"
        plt.savefig(path)
        plt.close()
        self.to_dataframe().to_csv(output_dir / f"{plot_name}.csv", index=False)
        return path


def compare_curves(curves: List[CurveParams], base_params: SimulationParams) -> pd.DataFrame:
    """Run the same utilization path through several curves and plot them together"""
    output_dir = Path('research/results/curve_comparison')
    output_dir.mkdir(parents=True, exist_ok=True)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 10))
    frames = []

    for curve in curves:
        params = SimulationParams(
            initial_utilization=base_params.initial_utilization,
            utilization_volatility=base_params.utilization_volatility,
            simulation_days=base_params.simulation_days,
            steps_per_day=base_params.steps_per_day,
            total_liquidity=base_params.total_liquidity,
            mint_decimals=base_params.mint_decimals,
            random_seed=base_params.random_seed,  # same seed, same utilization path
            experiment_name=base_params.experiment_name,
            curve=curve,
        )
        sim = UtilizationSimulation(params)
        frame = sim.simulate()
        frame["curve"] = str(curve)
        frames.append(frame)

        ax2.plot(sim.times, np.array(sim.borrow_rates) * 100, label=str(curve))

    ax1.plot(frames[0]["day"], frames[0]["utilization"] * 100, label='Utilization')
    ax1.set_ylabel('Utilization (%)')
    ax1.set_title('Reserve Utilization Over Time')
    ax1.legend(loc='upper left')
    ax1.grid(True, alpha=0.3)

    ax2.set_ylabel('Borrow APR (%)')
    ax2.set_xlabel('Time (days)')
    ax2.set_title('Borrow Rate Over Time')
    ax2.legend(bbox_to_anchor=(1.05, 1), loc='upper left')
    ax2.grid(True, alpha=0.3)

    seed_text = f"Random Seed: {base_params.random_seed}" if base_params.random_seed is not None else "No Seed"
    fig.text(0.02, 0.02, seed_text, fontsize=8, alpha=0.7)

    plt.tight_layout()

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    plt.savefig(output_dir / f"curve_comparison_{timestamp}.png", bbox_inches='tight', dpi=300)
    plt.close()
    return pd.concat(frames, ignore_index=True)


def main():
    curves = [
        CurveParams(optimal_utilization_rate=80, min_borrow_rate=0, optimal_borrow_rate=10, max_borrow_rate=100),
        CurveParams(optimal_utilization_rate=90, min_borrow_rate=0, optimal_borrow_rate=8, max_borrow_rate=150),
        CurveParams(optimal_utilization_rate=70, min_borrow_rate=2, optimal_borrow_rate=20, max_borrow_rate=60),
    ]

    base_params = SimulationParams(
        experiment_name="curve_comparison",
        random_seed=57,
        simulation_days=100,
    )

    compare_curves(curves, base_params)


if __name__ == "__main__":
    main()
