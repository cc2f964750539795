"""
GTM variable interpreter.

Turns one exported variable record into a ParsedVariable. Dispatch is closed
over VariableKind: each known kind has one handler, everything else goes
through the generic placeholder scan. A missing or malformed parameter only
empties the facet it feeds; interpretation itself never raises.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from gtm_models import DataSource, DataSourceType, LookupMapping, ParsedVariable, VariableKind
from gtm_provenance_config import GLOBAL_VARIABLE_PREFIXES
from gtm_source_extractors import (
    extract_gtm_references,
    extract_gtm_references_in_object,
    extract_script_data_sources,
)

logger = logging.getLogger(__name__)


# ==========================================================================
# Parameter helpers
# ==========================================================================

def find_param(params, key: str) -> Optional[dict]:
    """First parameter dict with the given key, or None"""
    if not isinstance(params, list):
        return None
    for param in params:
        if isinstance(param, dict) and param.get('key') == key:
            return param
    return None


def get_param_value(params, key: str) -> Optional[str]:
    param = find_param(params, key)
    if param is None:
        return None
    value = param.get('value')
    return value if isinstance(value, str) else None


def get_param_list(params, key: str) -> List:
    param = find_param(params, key)
    if param is None:
        return []
    items = param.get('list')
    return items if isinstance(items, list) else []


def get_map_value(row, key: str) -> Optional[str]:
    """Value of ``key`` inside a MAP row ({"type": "MAP", "map": [...]})"""
    if not isinstance(row, dict):
        return None
    return get_param_value(row.get('map'), key)


def parse_lookup_map(rows) -> List[LookupMapping]:
    mappings = []
    for row in rows:
        key = get_map_value(row, 'key')
        value = get_map_value(row, 'value')
        if key is not None and value is not None:
            mappings.append(LookupMapping(key=key, value=value))
    return mappings


def _add_references(parsed: ParsedVariable, refs: List[str]):
    for ref in refs:
        if ref not in parsed.gtm_references:
            parsed.gtm_references.append(ref)


# ==========================================================================
# Kind handlers
# ==========================================================================

def parse_custom_javascript(raw: dict, parsed: ParsedVariable, global_prefixes=GLOBAL_VARIABLE_PREFIXES, **_):
    js_code = get_param_value(raw.get('parameter'), 'javascript')
    if js_code is None:
        return

    parsed.raw_code = js_code
    parsed.gtm_references = extract_gtm_references(js_code)
    parsed.data_sources.extend(extract_script_data_sources(js_code, global_prefixes))


def parse_datalayer_variable(raw: dict, parsed: ParsedVariable, **_):
    params = raw.get('parameter')
    dl_name = get_param_value(params, 'name') or ''
    parsed.data_sources.append(DataSource(
        type=DataSourceType.DATALAYER,
        name=dl_name,
        path=dl_name,
        fallback=get_param_value(params, 'defaultValue'),
    ))


def parse_lookup_table(raw: dict, parsed: ParsedVariable, **_):
    """Simple and RegEx lookup tables share the same parameter layout"""
    params = raw.get('parameter')

    lookup_input = get_param_value(params, 'input')
    if lookup_input is not None:
        parsed.lookup_input = lookup_input
        parsed.gtm_references = extract_gtm_references(lookup_input)

    parsed.lookup_mappings = parse_lookup_map(get_param_list(params, 'map'))

    default_value = get_param_value(params, 'defaultValue')
    if default_value is not None:
        parsed.data_sources.append(DataSource(
            type=DataSourceType.CONSTANT,
            name='default',
            value=default_value,
        ))


def parse_constant(raw: dict, parsed: ParsedVariable, **_):
    value = get_param_value(raw.get('parameter'), 'value')
    if value is not None:
        parsed.data_sources.append(DataSource(
            type=DataSourceType.CONSTANT,
            name=parsed.name,
            value=value,
        ))


def parse_event_settings_variable(raw: dict, parsed: ParsedVariable, **_):
    params = raw.get('parameter')

    for row in get_param_list(params, 'eventSettingsTable'):
        _add_references(parsed, extract_gtm_references(get_map_value(row, 'parameterValue')))

    for row in get_param_list(params, 'userProperties'):
        _add_references(parsed, extract_gtm_references(get_map_value(row, 'value')))

    parsed.data_sources.append(DataSource(type=DataSourceType.COMPUTED, name='event_settings'))


def parse_javascript_variable(raw: dict, parsed: ParsedVariable, **_):
    name = get_param_value(raw.get('parameter'), 'name')
    if name:
        parsed.data_sources.append(DataSource(type=DataSourceType.GLOBAL_VARIABLE, name=name))


def parse_cookie_variable(raw: dict, parsed: ParsedVariable, **_):
    name = get_param_value(raw.get('parameter'), 'name')
    if name:
        parsed.data_sources.append(DataSource(type=DataSourceType.COOKIE, name=name))


def parse_url_variable(raw: dict, parsed: ParsedVariable, **_):
    params = raw.get('parameter')
    component = get_param_value(params, 'component') or 'URL'
    query_key = get_param_value(params, 'queryKey')
    path = f'{component}:{query_key}' if query_key else component
    parsed.data_sources.append(DataSource(type=DataSourceType.URL, name='window.location', path=path))


def parse_dom_element_variable(raw: dict, parsed: ParsedVariable, **_):
    params = raw.get('parameter')
    attribute = get_param_value(params, 'attributeName') or None

    if get_param_value(params, 'selectorType') == 'ID':
        element_id = get_param_value(params, 'elementId')
        if element_id:
            parsed.data_sources.append(DataSource(
                type=DataSourceType.DOM, name='getElementById',
                selector=f'#{element_id}', path=attribute,
            ))
        return

    selector = get_param_value(params, 'elementSelector')
    if selector:
        parsed.data_sources.append(DataSource(
            type=DataSourceType.DOM, name='querySelector',
            selector=selector, path=attribute,
        ))


def parse_generic_variable(raw: dict, parsed: ParsedVariable, **_):
    """Placeholder references only; no data source inference"""
    _add_references(parsed, extract_gtm_references_in_object(raw.get('parameter')))


VARIABLE_HANDLERS: Dict[VariableKind, Callable] = {
    VariableKind.CUSTOM_JAVASCRIPT: parse_custom_javascript,
    VariableKind.DATALAYER: parse_datalayer_variable,
    VariableKind.SIMPLE_LOOKUP: parse_lookup_table,
    VariableKind.REGEX_LOOKUP: parse_lookup_table,
    VariableKind.CONSTANT: parse_constant,
    VariableKind.EVENT_SETTINGS: parse_event_settings_variable,
    VariableKind.JAVASCRIPT_VARIABLE: parse_javascript_variable,
    VariableKind.COOKIE: parse_cookie_variable,
    VariableKind.URL: parse_url_variable,
    VariableKind.DOM_ELEMENT: parse_dom_element_variable,
}


def interpret_variable(raw: dict, global_prefixes: Sequence[str] = GLOBAL_VARIABLE_PREFIXES) -> ParsedVariable:
    """Interpret one exported variable record"""
    if not isinstance(raw, dict):
        raw = {}

    variable_id = raw.get('variableId') or ''
    name = raw.get('name')
    if not isinstance(name, str) or not name:
        name = f'Variable_{variable_id}'
    kind = VariableKind.from_gtm_type(raw.get('type'))
    notes = raw.get('notes')

    parsed = ParsedVariable(
        id=str(variable_id),
        name=name,
        type=kind,
        notes=notes if isinstance(notes, str) else None,
    )

    handler = VARIABLE_HANDLERS.get(kind)
    if handler is None:
        if kind == VariableKind.UNKNOWN:
            logger.debug(f"Unrecognized variable type '{raw.get('type')}' for '{name}', scanning references only")
        handler = parse_generic_variable

    handler(raw, parsed, global_prefixes=global_prefixes)

    logger.debug(f"Parsed '{name}' ({kind.value}): {len(parsed.data_sources)} sources, "
                 f"{len(parsed.gtm_references)} references")
    return parsed
