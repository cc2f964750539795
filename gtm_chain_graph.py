"""
GTM Variable Provenance Network Graph
Visualizes how GA4 parameters flow from primitive data sources through GTM variables
"""

import logging
import os
from collections import Counter
from datetime import datetime
from typing import Dict, List

import networkx as nx
import numpy as np
import plotly.graph_objects as go

from gtm_models import DataSourceType, ParsedConfig

logger = logging.getLogger(__name__)

# Color scheme for different node types
NODE_COLORS = {
    'event_param': '#ff7f0e',       # Orange for GA4 event parameters
    'user_property': '#d62728',     # Red for GA4 user properties
    'variable': '#1f77b4',          # Blue for GTM variables
    'builtin': '#e377c2',           # Pink for unresolved / built-in names
    'global_variable': '#2ca02c',   # Green for page globals
    'datalayer': '#9467bd',         # Purple for dataLayer paths
    'constant': '#7f7f7f',
    'url': '#17becf',
    'dom': '#8c564b',
    'cookie': '#bcbd22',
    'gtm_builtin': '#e377c2',
    'unknown': '#bcbd22'
}

NODE_SIZES = {
    'event_param': 25,
    'user_property': 25,
    'variable': 20,
    'builtin': 16,
}


def param_node_id(ga4_param: str) -> str:
    return f'param:{ga4_param}'


def source_node_id(source_type: str, name: str) -> str:
    return f'source:{source_type}:{name}'


def build_reference_graph(config: ParsedConfig, reachable_only: bool = True) -> nx.DiGraph:
    """
    Build a directed provenance graph.

    Edges point from consumer to origin: GA4 parameter -> variable -> referenced
    variable -> primitive data source. With ``reachable_only`` the graph is cut
    down to what at least one GA4 parameter depends on.
    """
    G = nx.DiGraph()

    def add_variable_node(name):
        if G.has_node(name):
            return
        variable = config.variables.get(name)
        if variable is None:
            G.add_node(name, node_type='builtin', label=name, kind='unknown')
        else:
            G.add_node(name, node_type='variable', label=name, kind=variable.type.value)

    for name, variable in config.variables.items():
        add_variable_node(name)

        for ref in variable.gtm_references:
            add_variable_node(ref)
            G.add_edge(name, ref, relation='references')

        for source in variable.data_sources:
            if source.type == DataSourceType.COMPUTED:
                continue
            node_id = source_node_id(source.type.value, source.name)
            if not G.has_node(node_id):
                G.add_node(node_id, node_type=source.type.value, label=source.name)
            G.add_edge(name, node_id, relation='reads')

    for param in config.event_settings:
        chain = config.get_declaration_chain(param)
        if chain is None:
            continue
        node_id = param_node_id(param.ga4_param)
        if not G.has_node(node_id):
            node_type = 'event_param' if param.scope == 'event' else 'user_property'
            G.add_node(node_id, node_type=node_type, label=param.ga4_param)
        add_variable_node(chain.gtm_variable)
        G.add_edge(node_id, chain.gtm_variable, relation='computed_by')

    if reachable_only:
        roots = [n for n, d in G.nodes(data=True) if d['node_type'] in ('event_param', 'user_property')]
        keep = set(roots)
        for root in roots:
            keep.update(nx.descendants(G, root))
        G = G.subgraph(keep).copy()

    return G


def find_reference_cycles(config: ParsedConfig) -> List[List[str]]:
    """Variable reference cycles, each rotated to start at its smallest name"""
    G = nx.DiGraph()
    for name, variable in config.variables.items():
        G.add_node(name)
        for ref in variable.gtm_references:
            if ref in config.variables:
                G.add_edge(name, ref)

    cycles = []
    for cycle in nx.simple_cycles(G):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    return sorted(cycles)


def get_graph_stats(G: nx.DiGraph) -> Dict:
    node_type_counts = Counter(d['node_type'] for _, d in G.nodes(data=True))
    return {
        'total_nodes': G.number_of_nodes(),
        'total_edges': G.number_of_edges(),
        'node_types': dict(node_type_counts),
        'density': nx.density(G) if G.number_of_nodes() > 1 else 0.0,
    }


def create_chain_visualization(G: nx.DiGraph, output_filename: str,
                               title: str = 'GA4 Parameter Provenance') -> str:
    """Write an interactive network graph of the provenance graph to a standalone HTML file"""
    num_nodes = len(G.nodes())

    if num_nodes > 1:
        pos = nx.spring_layout(G, k=3 / np.sqrt(num_nodes), iterations=100, scale=2, seed=42)
    else:
        pos = {node: (0.0, 0.0) for node in G.nodes()}

    node_x, node_y, node_labels, node_colors, node_sizes, hover_texts = [], [], [], [], [], []
    for node in G.nodes():
        x, y = pos[node]
        node_x.append(x)
        node_y.append(y)

        node_data = G.nodes[node]
        node_type = node_data['node_type']
        node_labels.append(node_data['label'])
        node_colors.append(NODE_COLORS.get(node_type, NODE_COLORS['unknown']))
        node_sizes.append(NODE_SIZES.get(node_type, 14))

        hover_text = f"<b>{node_data['label']}</b><br>"
        hover_text += f"Type: {node_type.replace('_', ' ').title()}<br>"
        if node_data.get('kind'):
            hover_text += f"GTM type: {node_data['kind']}<br>"
        hover_text += f"Depends on: {G.out_degree(node)} | Used by: {G.in_degree(node)}"
        hover_texts.append(hover_text)

    show_text = num_nodes < 50
    node_trace = go.Scatter(
        x=node_x, y=node_y,
        mode='markers+text' if show_text else 'markers',
        text=node_labels if show_text else None,
        textposition="top center",
        textfont=dict(size=8),
        hoverinfo='text',
        hovertext=hover_texts,
        marker=dict(
            showscale=False,
            color=node_colors,
            size=node_sizes,
            line=dict(width=1, color='white')
        ),
        showlegend=False
    )

    edge_x, edge_y = [], []
    for source, target in G.edges():
        x0, y0 = pos[source]
        x1, y1 = pos[target]
        edge_x.extend([x0, x1, None])
        edge_y.extend([y0, y1, None])

    edge_trace = go.Scatter(
        x=edge_x, y=edge_y,
        line=dict(width=0.5, color='#888'),
        hoverinfo='none',
        mode='lines',
        showlegend=False
    )

    present_types = sorted({d['node_type'] for _, d in G.nodes(data=True)})
    legend_traces = [
        go.Scatter(
            x=[None], y=[None],
            mode='markers',
            marker=dict(size=10, color=NODE_COLORS.get(node_type, NODE_COLORS['unknown'])),
            showlegend=True,
            name=node_type.replace('_', ' ').title()
        )
        for node_type in present_types
    ]

    fig = go.Figure(data=[edge_trace, node_trace] + legend_traces)
    fig.update_layout(
        title={
            'text': f'{title} ({num_nodes} nodes, {len(G.edges())} connections)',
            'x': 0.5,
            'xanchor': 'center',
        },
        showlegend=True,
        hovermode='closest',
        margin=dict(b=40, l=40, r=180, t=80),
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        plot_bgcolor='#fafafa',
        dragmode='pan',
    )
    fig.add_annotation(
        text=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        xref="paper", yref="paper",
        x=0, y=-0.05,
        showarrow=False,
        font=dict(size=12)
    )

    fig.write_html(output_filename, include_plotlyjs='cdn', config={'displaylogo': False})
    logger.info(f"Provenance graph written to {os.path.abspath(output_filename)}")
    return output_filename
