"""Tests for per-kind variable interpretation."""

from gtm_models import DataSourceType, LookupMapping, VariableKind
from gtm_variable_interpreter import get_map_value, interpret_variable, parse_lookup_map
from tests.conftest import SITE_NAME_JS, make_variable, map_row, template


class TestCustomJavaScript:

    def test_window_global_without_references(self):
        raw = make_variable('JS - Site', 'jsm', [template('javascript', 'function() { return window.SITE_NAME; }')])
        parsed = interpret_variable(raw)

        assert parsed.type == VariableKind.CUSTOM_JAVASCRIPT
        assert [(s.type, s.name) for s in parsed.data_sources] == [(DataSourceType.GLOBAL_VARIABLE, 'SITE_NAME')]
        assert parsed.gtm_references == []

    def test_references_and_raw_code(self):
        js = 'function() { return {{DL - Event}} + {{Page Path}}; }'
        parsed = interpret_variable(make_variable('JS - Combined', 'jsm', [template('javascript', js)]))

        assert parsed.gtm_references == ['DL - Event', 'Page Path']
        assert parsed.raw_code == js

    def test_fallback_carried_on_global(self):
        parsed = interpret_variable(make_variable('JS - Site Name', 'jsm', [template('javascript', SITE_NAME_JS)]))
        assert parsed.data_sources[0].name == 'AP_DATA_SITENAME'
        assert parsed.data_sources[0].fallback == 'unknown'

    def test_custom_prefixes(self):
        raw = make_variable('JS - Brand', 'jsm', [template('javascript', 'return BRAND_CODE;')])
        assert interpret_variable(raw).data_sources == []
        assert [s.name for s in interpret_variable(raw, global_prefixes=('BRAND_',)).data_sources] == ['BRAND_CODE']

    def test_missing_javascript_param(self):
        parsed = interpret_variable(make_variable('JS - Empty', 'jsm', []))
        assert parsed.data_sources == []
        assert parsed.raw_code is None


class TestDataLayerVariable:

    def test_name_and_default(self):
        raw = make_variable('DL - Category', 'v', [
            template('dataLayerVersion', '2'),
            template('name', 'eventCategory'),
            template('defaultValue', 'none'),
        ])
        source = interpret_variable(raw).data_sources[0]

        assert source.type == DataSourceType.DATALAYER
        assert source.name == 'eventCategory'
        assert source.path == 'eventCategory'
        assert source.fallback == 'none'

    def test_without_default(self):
        raw = make_variable('DL - Category', 'v', [template('name', 'eventCategory')])
        assert interpret_variable(raw).data_sources[0].fallback is None


class TestLookupTables:

    def test_simple_lookup(self):
        raw = make_variable('LT - Country', 'smm', [
            template('input', '{{JS - Country Code}}'),
            {'type': 'LIST', 'key': 'map', 'list': [
                map_row(key='kr', value='Korea'),
                map_row(key='us', value='United States'),
            ]},
            template('defaultValue', 'Other'),
        ])
        parsed = interpret_variable(raw)

        assert parsed.gtm_references == ['JS - Country Code']
        assert parsed.lookup_input == '{{JS - Country Code}}'
        assert parsed.lookup_mappings == [LookupMapping('kr', 'Korea'), LookupMapping('us', 'United States')]
        assert len(parsed.data_sources) == 1
        assert parsed.data_sources[0].type == DataSourceType.CONSTANT
        assert parsed.data_sources[0].name == 'default'
        assert parsed.data_sources[0].value == 'Other'

    def test_regex_lookup_shares_layout(self):
        raw = make_variable('RT - Env', 'remm', [
            template('input', '{{Page Hostname}}'),
            {'type': 'LIST', 'key': 'map', 'list': [map_row(key='.*dev.*', value='DEV')]},
        ])
        parsed = interpret_variable(raw)

        assert parsed.type == VariableKind.REGEX_LOOKUP
        assert parsed.gtm_references == ['Page Hostname']
        assert parsed.lookup_mappings == [LookupMapping('.*dev.*', 'DEV')]
        assert parsed.data_sources == []

    def test_missing_map_gives_empty_mappings(self):
        parsed = interpret_variable(make_variable('LT - Broken', 'smm', [template('input', '{{X}}')]))
        assert parsed.lookup_mappings == []

    def test_incomplete_rows_skipped(self):
        rows = [map_row(key='a', value='1'), map_row(key='b'), 'junk', {'map': None}]
        assert parse_lookup_map(rows) == [LookupMapping('a', '1')]


class TestConstant:

    def test_value(self):
        parsed = interpret_variable(make_variable('Const - Currency', 'c', [template('value', 'KRW')]))
        source = parsed.data_sources[0]
        assert (source.type, source.name, source.value) == (DataSourceType.CONSTANT, 'Const - Currency', 'KRW')


class TestEventSettings:

    def test_references_from_both_tables(self):
        raw = make_variable('GT - Event Settings', 'gtes', [
            {'type': 'LIST', 'key': 'eventSettingsTable', 'list': [
                map_row(parameter='content_group', parameterValue='{{Content Group Var}}'),
                map_row(parameter='page_type', parameterValue='{{Page Type}}'),
                map_row(parameter='literal', parameterValue='static'),
            ]},
            {'type': 'LIST', 'key': 'userProperties', 'list': [
                map_row(name='login_state', value='{{Login State}}'),
                map_row(name='page_type_again', value='{{Page Type}}'),
            ]},
        ])
        parsed = interpret_variable(raw)

        assert parsed.gtm_references == ['Content Group Var', 'Page Type', 'Login State']
        assert [(s.type, s.name) for s in parsed.data_sources] == [(DataSourceType.COMPUTED, 'event_settings')]


class TestSupplementaryKinds:

    def test_javascript_variable(self):
        parsed = interpret_variable(make_variable('JSV - Lang', 'j', [template('name', 'document.documentElement.lang')]))
        assert [(s.type, s.name) for s in parsed.data_sources] == [
            (DataSourceType.GLOBAL_VARIABLE, 'document.documentElement.lang')]

    def test_cookie(self):
        parsed = interpret_variable(make_variable('Cookie - GA', 'k', [template('name', '_ga')]))
        assert [(s.type, s.name) for s in parsed.data_sources] == [(DataSourceType.COOKIE, '_ga')]

    def test_url_with_query_key(self):
        parsed = interpret_variable(make_variable('URL - utm', 'u', [
            template('component', 'QUERY'),
            template('queryKey', 'utm_source'),
        ]))
        source = parsed.data_sources[0]
        assert (source.type, source.name, source.path) == (DataSourceType.URL, 'window.location', 'QUERY:utm_source')

    def test_dom_element_by_id(self):
        parsed = interpret_variable(make_variable('DOM - Price', 'd', [
            template('selectorType', 'ID'),
            template('elementId', 'price'),
            template('attributeName', 'data-value'),
        ]))
        source = parsed.data_sources[0]
        assert (source.name, source.selector, source.path) == ('getElementById', '#price', 'data-value')

    def test_dom_element_by_css(self):
        parsed = interpret_variable(make_variable('DOM - Title', 'd', [
            template('selectorType', 'CSS'),
            template('elementSelector', 'h1.title'),
        ]))
        source = parsed.data_sources[0]
        assert (source.name, source.selector, source.path) == ('querySelector', 'h1.title', None)


class TestUnknownKinds:

    def test_references_scanned_recursively(self):
        raw = make_variable('Custom Template', 'cvt_123_45', [
            template('input', '{{A}}'),
            {'type': 'LIST', 'key': 'rows', 'list': [map_row(col='{{B}}-{{A}}')]},
        ])
        parsed = interpret_variable(raw)

        assert parsed.type == VariableKind.CUSTOM_TEMPLATE
        assert parsed.gtm_references == ['A', 'B']
        assert parsed.data_sources == []

    def test_unrecognized_type(self):
        parsed = interpret_variable(make_variable('Mystery', 'zzz', [template('x', '{{Y}}')]))
        assert parsed.type == VariableKind.UNKNOWN
        assert parsed.gtm_references == ['Y']


class TestMalformedInput:

    def test_parameter_not_a_list(self):
        raw = make_variable('JS - Broken', 'jsm')
        raw['parameter'] = 'oops'
        parsed = interpret_variable(raw)
        assert parsed.data_sources == []
        assert parsed.gtm_references == []

    def test_non_string_values(self):
        raw = make_variable('DL - Broken', 'v', [{'key': 'name', 'value': 5}])
        parsed = interpret_variable(raw)
        assert parsed.data_sources[0].name == ''

    def test_missing_name_and_type(self):
        parsed = interpret_variable({'variableId': '9'})
        assert parsed.name == 'Variable_9'
        assert parsed.type == VariableKind.UNKNOWN

    def test_not_a_dict(self):
        parsed = interpret_variable(None)
        assert parsed.type == VariableKind.UNKNOWN
        assert parsed.data_sources == []

    def test_map_value_of_non_row(self):
        assert get_map_value('row', 'key') is None
