"""
Parameter mapping table generation.
Renders a ParsedConfig as a markdown document, a plain-text chain tree or a pandas table.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from gtm_models import (
    DataSource,
    DataSourceType,
    ParsedConfig,
    VariableChain,
    extract_ultimate_data_sources,
)
from gtm_provenance_config import (
    DATALAYER_PREFIX_USAGE,
    DATALAYER_USAGE,
    GLOBAL_VARIABLE_CATEGORIES,
    GLOBAL_VARIABLE_USAGE,
    OTHER_GLOBAL_CATEGORY,
)


def _cell(text) -> str:
    return str(text).replace('|', '\\|').replace('\n', ' ')


def format_sources(sources: List[DataSource]) -> str:
    """Data sources as a single markdown table cell"""
    if not sources:
        return '-'

    parts = []
    for s in sources:
        if s.type == DataSourceType.GLOBAL_VARIABLE:
            parts.append(f'`{s.name}`')
        elif s.type == DataSourceType.DATALAYER:
            parts.append(f'dataLayer: `{s.name}`')
        elif s.type == DataSourceType.CONSTANT and s.value is not None:
            parts.append(f'constant: "{s.value}"')
        elif s.type == DataSourceType.GTM_BUILTIN:
            parts.append(f'GTM: {s.name}')
        elif s.type == DataSourceType.DOM and s.selector:
            parts.append(f'DOM: `{s.selector}`')
        elif s.type == DataSourceType.COOKIE:
            parts.append(f'cookie: `{s.name}`')
        else:
            parts.append(s.name)
    return _cell(', '.join(parts))


def categorize_global_variables(config: ParsedConfig) -> Dict[str, List[str]]:
    """Global variable names found anywhere in the container, grouped by prefix"""
    global_vars = set()
    for variable in config.variables.values():
        for source in variable.data_sources:
            if source.type == DataSourceType.GLOBAL_VARIABLE:
                global_vars.add(source.name.split('.')[0])

    categories = {label: [] for label, _ in GLOBAL_VARIABLE_CATEGORIES}
    categories[OTHER_GLOBAL_CATEGORY] = []

    for name in sorted(global_vars):
        for label, prefixes in GLOBAL_VARIABLE_CATEGORIES:
            if name.startswith(prefixes):
                categories[label].append(name)
                break
        else:
            categories[OTHER_GLOBAL_CATEGORY].append(name)

    # Drop empty categories
    return {label: names for label, names in categories.items() if names}


def collect_datalayer_paths(config: ParsedConfig) -> List[str]:
    paths = set()
    for variable in config.variables.values():
        for source in variable.data_sources:
            if source.type == DataSourceType.DATALAYER and source.name:
                paths.add(source.name)
    return sorted(paths)


def infer_variable_usage(var_name: str) -> str:
    return GLOBAL_VARIABLE_USAGE.get(var_name, '-')


def infer_datalayer_usage(dl_path: str) -> str:
    for prefix, usage in DATALAYER_PREFIX_USAGE:
        if dl_path.startswith(prefix):
            return usage
    return DATALAYER_USAGE.get(dl_path, '-')


def _parameter_rows(config: ParsedConfig, scope: str) -> List[str]:
    lines = []
    for param in config.params_by_scope(scope):
        chain = config.get_declaration_chain(param)
        sources = extract_ultimate_data_sources(chain) if chain else []
        type_str = chain.variable_type.value if chain else 'unknown'
        lines.append(f'| `{_cell(param.ga4_param)}` | `{_cell(param.gtm_variable)}` | '
                     f'{format_sources(sources)} | {type_str} |')
    return lines


def generate_mapping_table_markdown(config: ParsedConfig, generated_on: Optional[str] = None) -> str:
    """Markdown mapping table: event parameters, user properties, measurement IDs, globals, dataLayer"""
    timestamp = generated_on or datetime.now().strftime('%Y-%m-%d')
    lines = [
        '# Parameter Mapping Table (generated)',
        '',
        f'> Generated from the GTM export on {timestamp}.',
        f'> Container ID: {config.container_id}',
    ]
    if config.container_name:
        lines.append(f'> Container name: {config.container_name}')
    lines.append('')

    lines.append('## Event Parameters')
    lines.append('')
    lines.append('| GA4 Parameter | GTM Variable | Data Sources | Type |')
    lines.append('|---------------|--------------|--------------|------|')
    lines.extend(_parameter_rows(config, 'event'))

    lines.append('')
    lines.append('## User Properties')
    lines.append('')
    lines.append('| GA4 User Property | GTM Variable | Data Sources | Type |')
    lines.append('|-------------------|--------------|--------------|------|')
    lines.extend(_parameter_rows(config, 'user'))

    table = config.measurement_id_config
    if table:
        lines.append('')
        lines.append('## Measurement ID Routing')
        lines.append('')
        lines.append(f'Variable: `{table.variable_name}`')
        lines.append('')
        lines.append('| Condition | Measurement ID | Environment |')
        lines.append('|-----------|----------------|-------------|')
        for entry in table.entries:
            lines.append(f'| `{_cell(entry.pattern)}` | {_cell(entry.measurement_id)} | {entry.environment or "-"} |')
        if table.default_id is not None:
            lines.append('')
            lines.append(f'Default: {table.default_id}')

    lines.append('')
    lines.append('## Global Variables Used')
    lines.append('')
    for category, names in categorize_global_variables(config).items():
        lines.append(f'### {category}')
        lines.append('')
        lines.append('| Global Variable | Usage |')
        lines.append('|-----------------|-------|')
        for name in names:
            lines.append(f'| `{name}` | {infer_variable_usage(name)} |')
        lines.append('')

    lines.append('## DataLayer Variables Used')
    lines.append('')
    lines.append('| DataLayer Path | Usage |')
    lines.append('|----------------|-------|')
    for dl_path in collect_datalayer_paths(config):
        lines.append(f'| `{_cell(dl_path)}` | {infer_datalayer_usage(dl_path)} |')

    return '\n'.join(lines)


def save_mapping_table(config: ParsedConfig, output_path: str) -> None:
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(generate_mapping_table_markdown(config))


# ============================================================================
# Chain tree
# ============================================================================

def format_source_line(source: DataSource) -> str:
    text = f'{source.type.value}: {source.name}'
    if source.path and source.path != source.name:
        text += f' [path: {source.path}]'
    if source.selector:
        text += f' [selector: {source.selector}]'
    if source.value is not None:
        text += f' = "{source.value}"'
    if source.fallback:
        text += f' (fallback: "{source.fallback}")'
    return text


def _chain_lines(chain: VariableChain) -> List[str]:
    lines = [f'{chain.gtm_variable} ({chain.variable_type.value})']

    for source in chain.data_sources:
        lines.append(f'    - {format_source_line(source)}')

    if chain.lookup_mappings:
        lines.append('    Lookup mappings:')
        for mapping in chain.lookup_mappings:
            lines.append(f'       "{mapping.key}" -> "{mapping.value}"')

    for i, dep in enumerate(chain.dependencies):
        is_last = i == len(chain.dependencies) - 1
        child_lines = _chain_lines(dep)
        lines.append(('    └── ' if is_last else '    ├── ') + child_lines[0])
        for line in child_lines[1:]:
            lines.append(('        ' if is_last else '    │   ') + line)

    return lines


def format_variable_chain(chain: VariableChain) -> str:
    """Variable chain as an indented tree"""
    return '\n'.join(_chain_lines(chain))


# ============================================================================
# Tabular export
# ============================================================================

def build_mapping_dataframe(config: ParsedConfig) -> pd.DataFrame:
    """One row per GA4 parameter (first declaration per scope)"""
    rows = []
    for scope in ('event', 'user'):
        for param in config.params_by_scope(scope):
            chain = config.get_declaration_chain(param)
            sources = extract_ultimate_data_sources(chain) if chain else []
            rows.append({
                'Scope': scope,
                'GA4 Parameter': param.ga4_param,
                'GTM Variable': param.gtm_variable,
                'Variable Type': chain.variable_type.value if chain else 'unknown',
                'Data Sources': ', '.join(s.name for s in sources),
                'Source Types': ', '.join(sorted({s.type.value for s in sources})),
            })

    columns = ['Scope', 'GA4 Parameter', 'GTM Variable', 'Variable Type', 'Data Sources', 'Source Types']
    return pd.DataFrame(rows, columns=columns)


def save_mapping_csv(config: ParsedConfig, output_path: str) -> None:
    build_mapping_dataframe(config).to_csv(output_path, index=False, encoding='utf-8')
