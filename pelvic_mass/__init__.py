"""
Pelvic Mass Biomarker Analysis
==============================

An analysis toolkit for a clinical biomarker dataset used to discriminate
benign pelvic masses from cancer.

Structure:
- config/: Paths, analysis constants and the explicit pipeline configuration
- data/: Spreadsheet loading, cleaning, stratified splitting and bootstrapping
- analysis/: Per-variable significance ranking and leave-one-out ablation
- models/: Model families, hyperparameter search, stacking and evaluation
- utils/: Statistical helpers and plotting

Steps covered:
1. Clean and reshape the lab measurement spreadsheet
2. Per-variable t-tests with Benjamini-Hochberg correction (volcano plot)
3. Leave-one-variable-out logistic regression over bootstrap resamples
4. Grid / Bayesian tuning of several classifier families
5. Stacked ensemble evaluated on a held-out test set
"""

__version__ = "1.0.0"
__author__ = "Pelvic Mass Analysis Team"
