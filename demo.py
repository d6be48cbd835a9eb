from __future__ import annotations
import matplotlib.pyplot as plt
import numpy as np
import multiprocessing as mp
from mcsweep import (
    ConfigurationError,
    GaussianYieldSurface,
    InventoryItem,
    ParameterGrid,
    SimulationConfig,
    run_grid_search,
    run_stockout_risk,
)

SAMPLE_INVENTORY = [
    ("MED-101", 500, 12.5, 3.0),
    ("MED-102", 100, 5.0, 1.5),
    ("MED-103", 25, 2.0, 5.0),
    ("MED-104", -5, 10.0, 1.0),
    ("MED-105", 200, 6.0, 0.5),
]


def progress(completed: int, total: int):
    step = max(1, total // 10)
    if completed % step == 0 or completed == total:
        print(f"Progress: {completed}/{total} ({100 * completed / total:.0f}%)")


def load_items(rows):
    """Build items from raw rows, collecting the ones that fail validation."""
    items, errors = [], []
    for row in rows:
        try:
            items.append(InventoryItem(*row))
        except (ConfigurationError, TypeError) as e:
            errors.append(f"{row[0]}: {e}")
    return items, errors


def create_yield_heatmap(table):
    """Heatmap of the yield landscape over pressure x temperature."""
    fig, ax = plt.subplots(figsize=(10, 8))
    # rows are temperature, columns pressure
    masked = np.ma.masked_invalid(table.values)
    im = ax.imshow(masked,
                   origin='lower',
                   cmap='viridis',
                   aspect='auto')
    ax.set_xticks(range(len(table.column_labels)))
    ax.set_xticklabels([f"{v:g}" for v in table.column_labels], rotation=90)
    ax.set_yticks(range(len(table.row_labels)))
    ax.set_yticklabels([f"{v:g}" for v in table.row_labels])
    ax.set_xlabel('Pressure (kPa)')
    ax.set_ylabel('Temperature (C)')
    ax.set_title('Yield Optimization Landscape', fontsize=14, fontweight='bold')
    fig.colorbar(im, ax=ax, label='Yield')
    plt.tight_layout()
    return fig


def main():
    # Stockout risk
    items, errors = load_items(SAMPLE_INVENTORY + [("ERR-999", float("nan"), 10.0, 2.0)])
    if errors:
        print("\n[!] Data Quality Issues Found:")
        for e in errors:
            print(f"    - {e}")

    risk_config = SimulationConfig(iterations_per_unit=1000, trial_horizon=30, base_seed=42)
    risk = run_stockout_risk(items,
                             risk_config,
                             backend="thread",
                             progress_callback=progress)
    print()
    print(risk.to_string())

    # Grid search
    surface = GaussianYieldSurface()
    grid = ParameterGrid.from_specs({"pressure": (0.0, 10.0, 0.5),
                                     "temperature": (0.0, 10.0, 0.5)})
    print(f"\nScheduling {len(grid)} experiments...")
    report = run_grid_search(grid,
                             surface,
                             SimulationConfig(iterations_per_unit=1, base_seed=42),
                             latency=0.05,
                             backend="thread",
                             degree_of_parallelism=32,
                             progress_callback=progress)
    print(report.to_string())

    print("\nGenerating visualizations...")
    plt.style.use('default')
    plt.rcParams['figure.dpi'] = 100
    plt.rcParams['savefig.dpi'] = 300

    table = report.pivot(rows="temperature", columns="pressure")
    fig = create_yield_heatmap(table)
    plt.show()

    save_plots = input("\nSave plot to file? (y/N): ").lower().strip() == 'y'
    if save_plots:
        fig.savefig('yield_landscape.png',
                    bbox_inches='tight',
                    dpi=300)
        print("Plot saved as PNG file!")


if __name__ == "__main__":

    try:
        mp.set_start_method("spawn", force=True)
    except RuntimeError:
        pass
    main()
