"""
Interactive visualization of motif profiles using Plotly.

Provides plots for:
- GOI mean profile against the bootstrap background envelope
- Gene-by-offset profile heatmaps
- Window motif scores split by gene-set membership
"""

from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .core.profile_comparison import window_scores


def create_profile_envelope_plot(
    envelope: pd.DataFrame,
    title: str = "Motif Profile",
    goi_label: str = "Genes of interest",
    goi_color: str = "#E41A1C",
    band_color: str = "rgba(153, 153, 153, 0.3)",
) -> go.Figure:
    """
    Plot the GOI mean profile over the shaded bootstrap envelope.

    Args:
        envelope: Output of ``bootstrap_envelope`` (indexed by offset)
        title: Plot title
        goi_label: Legend label of the GOI line

    Returns:
        Plotly figure
    """
    offsets = envelope.index.to_numpy()

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=np.concatenate([offsets, offsets[::-1]]),
            y=np.concatenate([envelope["bg_high"].to_numpy(), envelope["bg_low"].to_numpy()[::-1]]),
            fill="toself",
            fillcolor=band_color,
            line=dict(width=0),
            hoverinfo="skip",
            name="Background envelope",
        )
    )
    fig.add_trace(
        go.Scatter(x=offsets, y=envelope["bg_mean"], mode="lines",
                   line=dict(color="#999999", dash="dash"), name="Background mean")
    )
    fig.add_trace(
        go.Scatter(x=offsets, y=envelope["goi_mean"], mode="lines",
                   line=dict(color=goi_color, width=2), name=goi_label)
    )

    fig.add_vline(x=0, line_dash="dot", line_color="black", opacity=0.5)
    fig.update_layout(
        title=title,
        xaxis_title="Offset from anchor (bp)",
        yaxis_title="Mean summed relative score",
        template="plotly_white",
        width=800,
        height=450,
    )

    return fig


def create_profile_heatmap(
    profiles: pd.DataFrame,
    title: str = "Motif Profiles",
    color_scale: str = "Viridis",
    max_genes: Optional[int] = 500,
) -> go.Figure:
    """
    Heatmap of a gene-by-offset profile table.

    Genes are ordered by total score; only the top ``max_genes`` are drawn.
    """
    order = profiles.sum(axis=1).sort_values(ascending=False, kind="stable").index
    if max_genes is not None:
        order = order[:max_genes]
    data = profiles.loc[order]

    fig = go.Figure(
        data=go.Heatmap(
            z=data.to_numpy(),
            x=list(data.columns),
            y=list(data.index),
            colorscale=color_scale,
            hoverongaps=False,
        )
    )

    fig.update_layout(title=title, xaxis_title="Offset from anchor (bp)",
                      template="plotly_white", width=800, height=600)

    return fig


def create_membership_box_plot(
    profiles: pd.DataFrame,
    gene_sets: Dict[str, Iterable[str]],
    start: int = -100,
    end: int = 100,
    title: str = "Motif Score by Gene Set",
) -> go.Figure:
    """
    Box plot of per-gene window motif scores for each gene set.

    Args:
        profiles: Gene-by-offset profile table indexed by gene_id
        gene_sets: ``{set name: gene ids}``; genes in no set form "Other"
        start, end: Offset range summed per gene
    """
    scores = window_scores(profiles, start, end)

    frames = []
    members = set()
    for set_name, ids in gene_sets.items():
        ids = [g for g in ids if g in scores.index]
        members.update(ids)
        frames.append(pd.DataFrame({"gene_set": set_name, "window_score": scores.loc[ids].to_numpy()}))
    other = scores[~scores.index.isin(members)]
    frames.append(pd.DataFrame({"gene_set": "Other", "window_score": other.to_numpy()}))

    df = pd.concat(frames, ignore_index=True)
    fig = px.box(df, x="gene_set", y="window_score", points="outliers", title=title,
                 labels={"gene_set": "Gene set", "window_score": f"Summed score ({start}..{end} bp)"})
    fig.update_layout(template="plotly_white", width=700, height=500)

    return fig
