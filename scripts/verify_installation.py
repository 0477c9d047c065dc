"""
Manual Verification Script for biomarker-mcmc
Run this to check every component works before fitting real study data.

Usage: python scripts/verify_installation.py
"""

print("=" * 70)
print("biomarker-mcmc - Manual Verification")
print("=" * 70)
print()

# Test 1: Data simulation
print("[1/4] Testing data simulation...")
try:
    import numpy as np
    from biomarker_mcmc import LinearQuadraticModel, simulate_dataset

    model = LinearQuadraticModel(covariates=('dose',))
    truth = {'beta': np.array([150.0, 8.0, -0.4, 0.3, -0.01, 0.2]),
             'tau_e': 1 / 225, 'tau_b': 1 / 900}
    data = simulate_dataset(model, truth, n_subjects=12, seed=1)

    print(f"   ✓ Simulation working!")
    print(f"   - {data.n_subjects} subjects, {data.n_obs} observations")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 2: Sampling
print("[2/4] Testing multi-chain sampling...")
try:
    from biomarker_mcmc import ChainManager, SamplerConfig

    config = SamplerConfig(n_chains=2, n_burnin=200, n_iter=1000, thin=5, seed=1)
    samples = ChainManager(config, verbose=False).run(model.build_spec(data), data)

    print(f"   ✓ Sampler working!")
    print(f"   - {len(samples)} retained draws")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 3: Summaries
print("[3/4] Testing posterior summaries (ArviZ)...")
try:
    from biomarker_mcmc import summarize_posterior

    summary = summarize_posterior(samples, var_names=['sigma_e', 'sigma_b'])

    print(f"   ✓ Summaries working!")
    print(f"   - sigma_e posterior mean: {summary['sigma_e']['mean']:.2f} (true 15.0)")
    print(f"   - sigma_b posterior mean: {summary['sigma_b']['mean']:.2f} (true 30.0)")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 4: Prediction
print("[4/4] Testing trajectory prediction...")
try:
    from biomarker_mcmc import make_grid, predict_mean

    grid = make_grid(data, times=[0, 6, 12], dose=[0, 60])
    curve = predict_mean(model, samples, grid)

    print(f"   ✓ Prediction working!")
    print(f"   - {len(curve)} grid points predicted")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

print("=" * 70)
print("Verification complete")
print("=" * 70)
