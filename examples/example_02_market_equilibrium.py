"""Example 2: A Small Market Equilibrium

This example demonstrates how to:
1. Declare indexed prices over named sets
2. Pair nonlinear excess-supply residuals with prices using complements()
3. Re-solve after a failed attempt and read results per index
"""

import logging

from complementarity import Model, OutcomeKind, Set, SolverOptions


def main():
    """Solve a two-good exchange equilibrium."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("Example 2: Market Equilibrium")
    print("=" * 70)

    goods = Set(name="I", elements=("wheat", "corn"), description="Goods")
    budget = {"wheat": 6.0, "corn": 2.0}
    supply = {"wheat": 3.0, "corn": 4.0}

    model = Model(name="market", description="Excess supply ⟂ price >= 0")
    model.add_set(goods)
    p = model.add_variables("p", "I", lower=1e-3, start=1.0, description="Price")

    # supply - demand >= 0, with demand = budget / price
    model.complements(lambda i: supply[i] - budget[i] / p[i], p, name="excess_supply")

    print("\n" + "-" * 70)
    print("Step 1: Solve with a tight iteration budget")
    print("-" * 70)

    outcome = model.solve(options=SolverOptions.from_mapping(major_iteration_limit=1))
    print(f"\n{outcome}")

    if outcome.kind is OutcomeKind.ITERATION_LIMIT:
        print("\n" + "-" * 70)
        print("Step 2: Retry with the default budget")
        print("-" * 70)
        outcome = model.solve()
        print(f"\n{outcome}")

    if outcome.is_optimal:
        for (good,), price in model.get_values(p).items():
            print(f"  p[{good}] = {price:.4f}")

    print("\nSummary:")
    for key, value in model.summary()["statistics"].items():
        print(f"  {key}: {value}")

    print("\n" + "=" * 70)
    print("Example completed successfully!")
    print("=" * 70)

    return model


if __name__ == "__main__":
    model = main()
