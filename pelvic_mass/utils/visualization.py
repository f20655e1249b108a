"""
Visualization utilities for the pelvic mass analysis.
"""

import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
import numpy as np
from typing import Optional, Tuple, Dict
from pathlib import Path

from ..config.settings import FIGURES_DIR, AnalysisConfig

# Set style for consistent plots
plt.style.use('default')
sns.set_palette("husl")

OUTCOME_COLORS = {'TP': '#1b9e77', 'TN': '#7570b3', 'FP': '#d95f02', 'FN': '#e7298a'}


class BiomarkerVisualizer:
    """
    Visualization utilities for the biomarker analysis.

    Provides the volcano plot, performance-drop forest plot, ROC curves,
    variable importance, confusion matrix, prediction-outcome scatter and
    ensemble weight plots.
    """

    def __init__(self, save_dir: Optional[Path] = None, figsize: Tuple[int, int] = (10, 6)):
        """
        Initialize the visualizer.

        Args:
            save_dir: Directory to save figures. If None, uses default from config.
            figsize: Default figure size for plots.
        """
        self.save_dir = Path(save_dir) if save_dir is not None else FIGURES_DIR
        self.figsize = figsize

    def volcano_plot(self, variable_stats: pd.DataFrame,
                     threshold: float = AnalysisConfig.SIGNIFICANCE_THRESHOLD,
                     label_top: int = 10, title: str = "Volcano Plot: Cancer vs Benign",
                     save_name: Optional[str] = None) -> plt.Figure:
        """
        Log2 fold-change against -log10 adjusted p-value.

        Args:
            variable_stats: Output of VariableSignificanceRanker.rank
            threshold: Adjusted p-value threshold drawn as a reference line
            label_top: Number of most significant variables to annotate
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        data = variable_stats.dropna(subset=['log2_fold_change', 'neg_log10_p_adjusted']).copy()
        # p_adjusted == 0 gives an infinite height
        finite = data['neg_log10_p_adjusted'][np.isfinite(data['neg_log10_p_adjusted'])]
        cap = finite.max() + 1 if not finite.empty else 1.0
        data['neg_log10_p_adjusted'] = data['neg_log10_p_adjusted'].clip(upper=cap)

        fig, ax = plt.subplots(figsize=self.figsize)
        colors = np.where(data['significant'], '#d62728', '#7f7f7f')
        ax.scatter(data['log2_fold_change'], data['neg_log10_p_adjusted'], c=colors, alpha=0.8)

        ax.axhline(-np.log10(threshold), linestyle='--', color='black', linewidth=0.8)
        ax.axvline(0, linestyle=':', color='black', linewidth=0.8)

        for _, row in data.head(label_top).iterrows():
            ax.annotate(row['variable'], (row['log2_fold_change'], row['neg_log10_p_adjusted']),
                        textcoords='offset points', xytext=(4, 4), fontsize=9)

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('log2 Fold Change (Cancer / Benign)', fontsize=12)
        ax.set_ylabel('-log10 Adjusted p-value', fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def performance_drop_plot(self, ablation_summary: pd.DataFrame,
                              title: str = "Performance Drop When Removing Each Variable",
                              save_name: Optional[str] = None) -> plt.Figure:
        """
        Forest plot of mean performance drop with 95% confidence intervals.

        Args:
            ablation_summary: Output of LeaveOneOutEstimator.fit
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        data = ablation_summary.dropna(subset=['mean_drop']).reset_index(drop=True)
        height = max(self.figsize[1], 0.35 * len(data) + 1)
        fig, ax = plt.subplots(figsize=(self.figsize[0], height))

        positions = np.arange(len(data))
        ax.errorbar(data['mean_drop'], positions,
                    xerr=[data['mean_drop'] - data['ci_lower'], data['ci_upper'] - data['mean_drop']],
                    fmt='o', color='#1f77b4', ecolor='#7f7f7f', capsize=3)
        ax.axvline(0, linestyle='--', color='black', linewidth=0.8)
        ax.set_yticks(positions)
        ax.set_yticklabels(data['configuration'])

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('AUC Drop (Full Model - Reduced Model)', fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def roc_curves(self, curves: Dict[str, pd.DataFrame], auc_table: Optional[pd.DataFrame] = None,
                   title: str = "ROC Curves (Test Set)", save_name: Optional[str] = None) -> plt.Figure:
        """
        Overlay ROC curves of ensemble members and the ensemble.

        Args:
            curves: Mapping of model name to DataFrame with fpr/tpr columns
            auc_table: Optional AUC table used for legend labels
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        aucs = {}
        if auc_table is not None:
            aucs = dict(zip(auc_table['model'], auc_table['roc_auc']))

        fig, ax = plt.subplots(figsize=(7, 7))
        for name, curve in curves.items():
            label = f"{name} (AUC={aucs[name]:.3f})" if name in aucs else name
            width = 2.5 if name == 'ensemble' else 1.2
            ax.plot(curve['fpr'], curve['tpr'], label=label, linewidth=width)
        ax.plot([0, 1], [0, 1], linestyle='--', color='grey', linewidth=0.8)

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('1 - Specificity', fontsize=12)
        ax.set_ylabel('Sensitivity', fontsize=12)
        ax.legend(loc='lower right', fontsize=8)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def variable_importance_plot(self, importance: pd.DataFrame, top_n: int = 15,
                                 title: str = "Permutation Variable Importance",
                                 save_name: Optional[str] = None) -> plt.Figure:
        """
        Horizontal bar chart of variable importance.

        Args:
            importance: Output of permutation_importance_table
            top_n: Number of variables to show
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        data = importance.head(top_n).iloc[::-1]
        fig, ax = plt.subplots(figsize=self.figsize)

        ax.barh(data['variable'], data['importance_mean'], xerr=data.get('importance_std'),
                color='#2ca02c', alpha=0.8)

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('Mean AUC Decrease', fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def confusion_matrix_heatmap(self, cm: pd.DataFrame, title: str = "Confusion Matrix",
                                 save_name: Optional[str] = None) -> plt.Figure:
        """
        Annotated heatmap of a confusion matrix.

        Args:
            cm: Confusion matrix DataFrame from evaluate_on_test
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=(6, 5))

        sns.heatmap(cm, annot=True, fmt='d', cmap='Blues', cbar=False, ax=ax)

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('Predicted', fontsize=12)
        ax.set_ylabel('Truth', fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def outcome_scatter(self, predictions: pd.DataFrame, x: str, y: str,
                        log_scale: bool = True, title: Optional[str] = None,
                        save_name: Optional[str] = None) -> plt.Figure:
        """
        Scatter of two predictors coloured by prediction outcome (TP/TN/FP/FN).

        Args:
            predictions: Prediction frame from evaluate_on_test
            x: Predictor on the x-axis
            y: Predictor on the y-axis
            log_scale: Use log axes (only when all values are positive)
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        sns.scatterplot(data=predictions, x=x, y=y, hue='outcome', palette=OUTCOME_COLORS,
                        hue_order=[k for k in OUTCOME_COLORS if k in set(predictions['outcome'])],
                        ax=ax, alpha=0.8)

        if log_scale:
            if (predictions[x].dropna() > 0).all():
                ax.set_xscale('log')
            if (predictions[y].dropna() > 0).all():
                ax.set_yscale('log')

        ax.set_title(title or f"{y} vs {x} by Prediction Outcome", fontsize=14, fontweight='bold')
        ax.set_xlabel(x.replace('_', ' ').upper(), fontsize=12)
        ax.set_ylabel(y.replace('_', ' ').upper(), fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def ensemble_weights_plot(self, weights: pd.DataFrame, title: str = "Stacking Weights",
                              save_name: Optional[str] = None) -> plt.Figure:
        """
        Bar chart of non-zero member weights coloured by model family.

        Args:
            weights: Output of StackedEnsemble.weights_frame
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        data = weights[weights['weight'] > 0]
        fig, ax = plt.subplots(figsize=self.figsize)

        if not data.empty:
            sns.barplot(data=data, x='weight', y='member', hue='family', dodge=False, ax=ax)

        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('Weight', fontsize=12)
        ax.set_ylabel('')

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def tuning_plot(self, leaderboard: pd.DataFrame, param: str, metric: str = 'roc_auc',
                    title: Optional[str] = None, save_name: Optional[str] = None) -> plt.Figure:
        """
        Resampled metric against one hyperparameter.

        Args:
            leaderboard: TuningResult.leaderboard() output
            param: Hyperparameter column on the x-axis
            metric: Metric column on the y-axis
            title: Plot title
            save_name: Filename to save the plot

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        data = leaderboard.dropna(subset=[metric])
        err_col = f"{metric}_std_err"
        if not data.empty:
            x = data[param].astype(str) if data[param].dtype == object else data[param]
            ax.errorbar(x, data[metric], yerr=data[err_col] if err_col in data else None,
                        fmt='o', alpha=0.8)

        ax.set_title(title or f"{metric} by {param}", fontsize=14, fontweight='bold')
        ax.set_xlabel(param, fontsize=12)
        ax.set_ylabel(metric, fontsize=12)

        plt.tight_layout()

        if save_name:
            self._save_figure(fig, save_name)

        return fig

    def _save_figure(self, fig: plt.Figure, filename: str, dpi: int = 300):
        """
        Save figure to file.

        Args:
            fig: matplotlib Figure object
            filename: Name of the file (without extension)
            dpi: Resolution for saved figure
        """
        # Ensure save directory exists
        self.save_dir.mkdir(parents=True, exist_ok=True)

        # Add .png extension if not present
        if not filename.endswith(('.png', '.pdf', '.svg', '.jpg', '.jpeg')):
            filename += '.png'

        filepath = self.save_dir / filename
        fig.savefig(filepath, dpi=dpi, bbox_inches='tight')
        print(f"Figure saved: {filepath}")

    @staticmethod
    def close_all():
        """Close all figures to free memory."""
        plt.close('all')
