"""Example 1: Solving a Linear Complementarity Problem

This example demonstrates how to:
1. Build the LCP  0 <= x  ⟂  Mx + q >= 0  from scalar variables
2. Solve it with the bundled solvers
3. Read the solution and the classified outcome
"""

import logging

from complementarity import Model, dot


def main():
    """Build and solve a 4x4 LCP."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("Example 1: Linear Complementarity Problem")
    print("=" * 70)

    M = [
        [0, 0, -1, -1],
        [0, 0, 1, -2],
        [1, -1, 2, -2],
        [1, 2, -2, 4],
    ]
    q = [2, 2, -2, -6]

    print("\n" + "-" * 70)
    print("Step 1: Declare variables and residuals")
    print("-" * 70)

    model = Model(name="lcp", description="0 <= x ⟂ Mx + q >= 0")
    x = model.add_variables("x", range(1, 5))
    F = model.add_expressions("F", lambda i: dot(M[i - 1], list(x)) + q[i - 1], range(1, 5))
    model.correspond(F, x)
    print(f"\n{model}")

    print("\n" + "-" * 70)
    print("Step 2: Solve")
    print("-" * 70)

    for solver in ("newton", "trust_region"):
        model.reset()
        outcome = model.solve(solver=solver)
        print(f"\n{solver}: {outcome}")
        if outcome.is_optimal:
            for index, value in model.get_values(x).items():
                print(f"  x{list(index)} = {value:.6f}")

    print("\n" + "-" * 70)
    print("Step 3: Same problem from matrix data")
    print("-" * 70)

    lcp = Model.from_lcp(M, q)
    outcome = lcp.solve()
    print(f"\n{outcome}")
    print(f"x* = {lcp.bridge.flatten_values().round(6).tolist()}")

    print("\n" + "=" * 70)
    print("Example completed successfully!")
    print("=" * 70)

    return model


if __name__ == "__main__":
    model = main()
