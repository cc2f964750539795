"""Tests for the markdown mapping table, chain tree and DataFrame export."""

import pandas as pd

from gtm_mapping_table import (
    build_mapping_dataframe,
    categorize_global_variables,
    format_sources,
    format_variable_chain,
    generate_mapping_table_markdown,
    infer_datalayer_usage,
    save_mapping_csv,
    save_mapping_table,
)
from gtm_models import DataSource, DataSourceType
from gtm_variable_chain_parser import GTMVariableChainParser
from tests.conftest import make_variable, map_row, template


def parsed(gtm_data):
    return GTMVariableChainParser(gtm_data).parse()


class TestFormatSources:

    def test_empty(self):
        assert format_sources([]) == '-'

    def test_each_type(self):
        sources = [
            DataSource(DataSourceType.GLOBAL_VARIABLE, 'AP_DATA_LANG'),
            DataSource(DataSourceType.DATALAYER, 'event', path='event'),
            DataSource(DataSourceType.CONSTANT, 'default', value='other'),
            DataSource(DataSourceType.GTM_BUILTIN, 'Page URL'),
            DataSource(DataSourceType.DOM, 'querySelector', selector='h1'),
            DataSource(DataSourceType.COOKIE, '_ga'),
            DataSource(DataSourceType.URL, 'window.location'),
        ]
        assert format_sources(sources) == (
            '`AP_DATA_LANG`, dataLayer: `event`, constant: "other", GTM: Page URL, '
            'DOM: `h1`, cookie: `_ga`, window.location'
        )

    def test_pipes_escaped(self):
        assert format_sources([DataSource(DataSourceType.GTM_BUILTIN, 'a|b')]) == 'GTM: a\\|b'


class TestMarkdown:

    def test_sections(self, sample_gtm_data):
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data), generated_on='2024-01-01')

        assert markdown.startswith('# Parameter Mapping Table (generated)')
        assert '> Generated from the GTM export on 2024-01-01.' in markdown
        assert '> Container ID: 100000000' in markdown
        for heading in ('## Event Parameters', '## User Properties', '## Measurement ID Routing',
                        '## Global Variables Used', '## DataLayer Variables Used'):
            assert heading in markdown

    def test_parameter_rows(self, sample_gtm_data):
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data))

        assert '| `site_name` | `{{JS - Site Name}}` | `AP_DATA_SITENAME` | jsm |' in markdown
        assert '| `currency` | `{{Const - Currency}}` | constant: "KRW" | c |' in markdown
        assert '| `send_page_view` | `false` | - | unknown |' in markdown
        assert '| `login_state` | `{{Login State}}` | GTM: Login State | unknown |' in markdown

    def test_measurement_id_section(self, sample_gtm_data):
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data))

        assert 'Variable: `RT - GA4 MeasurementId Table`' in markdown
        assert '| `true` | G-PROD1 | PRD |' in markdown
        assert '| `false` | G-DEV1 | DEV |' in markdown
        assert 'Default: G-DEFAULT' in markdown

    def test_no_measurement_id_section_without_table(self, sample_gtm_data):
        variables = sample_gtm_data['containerVersion']['variable']
        sample_gtm_data['containerVersion']['variable'] = [
            v for v in variables if v['name'] != 'RT - GA4 MeasurementId Table']
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data))
        assert '## Measurement ID Routing' not in markdown

    def test_globals_and_datalayer_listing(self, sample_gtm_data):
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data))

        assert '### Site information (AP_DATA_*)' in markdown
        assert '| `AP_DATA_SITENAME` | Site name |' in markdown
        assert '| `AP_DATA_PAGETYPE` | Page type |' in markdown
        assert '| `event` | Event name |' in markdown

    def test_user_property_sharing_event_parameter_name(self, sample_gtm_data):
        settings = next(v for v in sample_gtm_data['containerVersion']['variable']
                        if v['name'] == 'GT - Event Settings')
        user_rows = next(p for p in settings['parameter'] if p['key'] == 'userProperties')
        user_rows['list'].append(map_row(name='currency', value='{{Login State}}'))
        markdown = generate_mapping_table_markdown(parsed(sample_gtm_data))

        assert '| `currency` | `{{Const - Currency}}` | constant: "KRW" | c |' in markdown
        assert '| `currency` | `{{Login State}}` | - | unknown |' in markdown

    def test_member_path_globals_grouped_by_root(self, sample_gtm_data):
        sample_gtm_data['containerVersion']['variable'].append(
            make_variable('JS - Product', 'jsm', [template('javascript', 'return AP_PRD_INFO.name;')], '8'))
        categories = categorize_global_variables(parsed(sample_gtm_data))
        assert categories['Product information (AP_PRD_*)'] == ['AP_PRD_INFO']

    def test_save(self, sample_gtm_data, tmp_path):
        output = tmp_path / 'mapping.md'
        save_mapping_table(parsed(sample_gtm_data), str(output))
        assert output.read_text(encoding='utf-8').startswith('# Parameter Mapping Table')


class TestGlobalCategories:

    def test_grouping(self, sample_gtm_data):
        categories = categorize_global_variables(parsed(sample_gtm_data))
        assert categories == {'Site information (AP_DATA_*)': ['AP_DATA_PAGETYPE', 'AP_DATA_SITENAME']}

    def test_datalayer_prefix_usage(self):
        assert infer_datalayer_usage('gtm.elementId') == 'GTM built-in'
        assert infer_datalayer_usage('somethingElse') == '-'


class TestChainTree:

    def test_tree(self, sample_gtm_data):
        config = parsed(sample_gtm_data)
        text = format_variable_chain(config.get_variable_chain('content_group'))

        assert text.splitlines() == [
            'LT - Content Group (smm)',
            '    - constant: default = "other"',
            '    Lookup mappings:',
            '       "main:gtm.js" -> "home"',
            '       "product:gtm.js" -> "product"',
            '    └── JS - Page Type (jsm)',
            '            - global_variable: AP_DATA_PAGETYPE',
            '            └── DL - Event (v)',
            '                    - datalayer: event (fallback: "none")',
        ]


class TestDataFrame:

    def test_columns_and_rows(self, sample_gtm_data):
        df = build_mapping_dataframe(parsed(sample_gtm_data))

        assert list(df.columns) == ['Scope', 'GA4 Parameter', 'GTM Variable', 'Variable Type',
                                    'Data Sources', 'Source Types']
        assert len(df) == 5
        row = df[df['GA4 Parameter'] == 'content_group'].iloc[0]
        assert row['Data Sources'] == 'default, AP_DATA_PAGETYPE, event'
        assert row['Source Types'] == 'constant, datalayer, global_variable'
        assert df[df['Scope'] == 'user']['GA4 Parameter'].tolist() == ['login_state']

    def test_csv(self, sample_gtm_data, tmp_path):
        output = tmp_path / 'mapping.csv'
        save_mapping_csv(parsed(sample_gtm_data), str(output))
        df = pd.read_csv(output)
        assert df['GA4 Parameter'].tolist()[:2] == ['site_name', 'content_group']
