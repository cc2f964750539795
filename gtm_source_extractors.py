"""
Pattern-based extraction of data sources from Custom JavaScript bodies.

Every extractor is a pure function over a string: it never looks at other
variables and returns an empty list when nothing recognisable is found.
Only the call/access shapes listed here are discovered; anything else in a
script body is invisible to provenance resolution.
"""

import re
from typing import List, Optional, Sequence

from gtm_models import DataSource, DataSourceType
from gtm_provenance_config import GLOBAL_VARIABLE_PREFIXES

# {{Variable Name}}
GTM_REFERENCE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')

# window.SITE_NAME, a bare AP_DATA_SITENAME or a member path like AP_PRD.name
GLOBAL_VARIABLE_PATTERN = re.compile(
    r'(\bwindow\.)?(?<![\w$])([A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+)((?:\.[A-Za-z_$][\w$]*)*)(?![\w$])'
)

# catch (e) { result = "x" } / catch (e) { return 'x' }
FALLBACK_PATTERN = re.compile(
    r'catch\s*\([^)]*\)\s*\{[^}]*?(?:[A-Za-z_$][\w$]*\s*=\s*|return\s+)["\']([^"\']+)["\']'
)

DATALAYER_INDEX_PATTERN = re.compile(r'\bdataLayer\s*\[\s*[\'"]?([^\'"}\]]+)[\'"]?\s*\]')
GOOGLE_TAG_DATA_PATTERN = re.compile(r'\bgoogle_tag_data\.([A-Za-z_$][\w$]*)')

DOM_PATTERNS = [
    ('querySelector',
     re.compile(r'document\.querySelector(?:All)?\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)'), ''),
    ('getElementById',
     re.compile(r'document\.getElementById\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)'), '#'),
    ('getElementsByClassName',
     re.compile(r'document\.getElementsByClassName\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)'), '.'),
]


def extract_gtm_references(text) -> List[str]:
    """Extract {{Variable Name}} references, trimmed and in order of first appearance"""
    if not isinstance(text, str):
        return []

    references = []
    for match in GTM_REFERENCE_PATTERN.findall(text):
        ref = match.strip()
        if ref and ref not in references:
            references.append(ref)
    return references


def extract_gtm_references_in_object(obj) -> List[str]:
    """Recursively find all variable references in any object (dict, list, or string)"""
    references = []

    def add(refs):
        for ref in refs:
            if ref not in references:
                references.append(ref)

    if isinstance(obj, str):
        add(extract_gtm_references(obj))
    elif isinstance(obj, dict):
        for value in obj.values():
            add(extract_gtm_references_in_object(value))
    elif isinstance(obj, list):
        for item in obj:
            add(extract_gtm_references_in_object(item))

    return references


def find_fallback(js_code: str, start: int = 0) -> Optional[str]:
    """Literal assigned or returned in the first catch block at or after ``start``"""
    match = FALLBACK_PATTERN.search(js_code, start)
    return match.group(1) if match else None


def extract_global_variables(js_code, prefixes: Sequence[str] = GLOBAL_VARIABLE_PREFIXES) -> List[DataSource]:
    """
    Find reads of upper-case, underscore-delimited page globals.

    ``window.NAME`` always counts; a bare ``NAME`` only counts when it starts with
    one of ``prefixes`` and is not a member of some other object. Member paths
    such as ``AP_PRD.name`` are reported whole. The fallback is the literal from
    the nearest catch block that follows the first read.
    """
    if not isinstance(js_code, str):
        return []

    results = []
    seen = set()
    for match in GLOBAL_VARIABLE_PATTERN.finditer(js_code):
        root_name = match.group(2)
        var_name = root_name + match.group(3)
        if var_name in seen:
            continue

        via_window = match.group(1) is not None
        if not via_window:
            start = match.start(2)
            if start > 0 and js_code[start - 1] == '.':
                continue
            if not root_name.startswith(tuple(prefixes)):
                continue

        seen.add(var_name)
        results.append(DataSource(
            type=DataSourceType.GLOBAL_VARIABLE,
            name=var_name,
            fallback=find_fallback(js_code, match.end()),
        ))

    return results


def extract_datalayer_access(js_code) -> List[DataSource]:
    """Direct dataLayer[...] reads and google_tag_data.* reads"""
    if not isinstance(js_code, str):
        return []

    paths = []
    for match in DATALAYER_INDEX_PATTERN.finditer(js_code):
        path = match.group(1).strip()
        if path and path not in paths:
            paths.append(path)

    for match in GOOGLE_TAG_DATA_PATTERN.finditer(js_code):
        path = f'google_tag_data.{match.group(1)}'
        if path not in paths:
            paths.append(path)

    return [DataSource(type=DataSourceType.DATALAYER, name=path, path=path) for path in paths]


def extract_dom_access(js_code) -> List[DataSource]:
    """One source per document.querySelector / getElementById / getElementsByClassName call"""
    if not isinstance(js_code, str) or 'document.' not in js_code:
        return []

    calls = []
    for call_name, pattern, selector_prefix in DOM_PATTERNS:
        for match in pattern.finditer(js_code):
            calls.append((match.start(), call_name, f'{selector_prefix}{match.group(1)}'))

    calls.sort(key=lambda c: c[0])
    return [
        DataSource(type=DataSourceType.DOM, name=call_name, selector=selector)
        for _, call_name, selector in calls
    ]


def extract_url_usage(js_code) -> List[DataSource]:
    if isinstance(js_code, str) and 'location.' in js_code:
        return [DataSource(type=DataSourceType.URL, name='window.location')]
    return []


def extract_user_agent_usage(js_code) -> List[DataSource]:
    if isinstance(js_code, str) and 'navigator.userAgent' in js_code:
        return [DataSource(type=DataSourceType.GTM_BUILTIN, name='navigator.userAgent')]
    return []


def extract_cookie_usage(js_code) -> List[DataSource]:
    if isinstance(js_code, str) and 'document.cookie' in js_code:
        return [DataSource(type=DataSourceType.COOKIE, name='document.cookie')]
    return []


def extract_script_data_sources(js_code, prefixes: Sequence[str] = GLOBAL_VARIABLE_PREFIXES) -> List[DataSource]:
    """Union of every extractor above, in a fixed order"""
    return (
        extract_global_variables(js_code, prefixes)
        + extract_datalayer_access(js_code)
        + extract_url_usage(js_code)
        + extract_user_agent_usage(js_code)
        + extract_dom_access(js_code)
        + extract_cookie_usage(js_code)
    )
