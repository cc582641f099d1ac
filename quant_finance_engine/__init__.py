"""
Quantitative Finance Engine

Modules:
- bonds: coupon security + cash-flow schedule + NPV residual discounting
- yields: secant yield-to-maturity solver (+ bracketed check, table runner)
- trees: price tree model + per-level expectation/variance + binomial builder
- lattice: n-state growth-rate lattice calibration
- utils: security term parsing + payment period counts
- errors: error taxonomy and ConvergenceWarning
"""
