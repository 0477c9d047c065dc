"""
Biomarker MCMC — Test Suite
===========================

Test modules:
- test_priors.py: prior log-densities and proposals
- test_conjugate.py: closed-form full conditionals
- test_model_spec.py: ModelSpec builder and setup validation
- test_data.py: CSV loading and synthetic data
- test_models.py: linear-quadratic and logistic model variants
- test_sampler.py: single-chain state machine and Metropolis step
- test_chains.py: multi-chain runs, seeding, thinning, end-to-end
- test_posterior.py: sample-set layout
- test_summary.py: ArviZ summaries and diagnostics
- test_predict.py: trajectory prediction
"""
