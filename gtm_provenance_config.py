"""
Configuration for GTM variable provenance resolution.
Adjust the naming conventions below to match the site whose container is analysed.
"""

# Maximum recursion depth when following {{Variable}} references
MAX_CHAIN_DEPTH = 10

# Labels used for the synthetic leaf that stops recursion
CYCLE_DETECTED = '[cycle detected]'
MAX_DEPTH_EXCEEDED = '[max depth exceeded]'

# Bare upper-case globals (AP_DATA_SITENAME) are only picked up with one of these prefixes.
# Globals read through window.NAME are picked up regardless of prefix.
GLOBAL_VARIABLE_PREFIXES = (
    'AP_',
    'GA4_',
    'SITE_',
    'PAGE_',
    'USER_',
    'DATA_',
)

# Lookup tables whose name contains this token route hits to a measurement ID.
# Compared against the lower-cased name with spaces, underscores and hyphens removed.
ENVIRONMENT_TABLE_TOKEN = 'measurementid'

# Environment inference for lookup keys, checked in order
ENVIRONMENT_EXACT_KEYS = {
    'true': 'PRD',
    'false': 'DEV',
}
ENVIRONMENT_SUBSTRING_RULES = [
    (('prd', 'prod', 'live'), 'PRD'),
    (('dev', 'stg', 'qa', 'test'), 'DEV'),
    (('app',), 'APP'),
]

VARIABLE_TYPE_NAMES = {
    'jsm': 'Custom JavaScript',
    'v': 'Data Layer Variable',
    'smm': 'Lookup Table',
    'remm': 'Regex Table',
    'c': 'Constant',
    'gtes': 'Google Tag: Event Settings',
    'j': 'JavaScript Variable',
    'k': 'Cookie',
    'u': 'URL',
    'd': 'DOM Element',
    'gas': 'Google Analytics Settings',
    'aev': 'Auto-Event Variable',
    'cvt': 'Custom Template Variable',
    'unknown': 'Unknown',
}

# Renderer: global variable sections, first matching prefix wins
GLOBAL_VARIABLE_CATEGORIES = [
    ('Site information (AP_DATA_*)', ('AP_DATA_',)),
    ('Product information (AP_PRD_*)', ('AP_PRD_',)),
    ('Cart / order (AP_CART_*, AP_ORDER_*)', ('AP_CART_', 'AP_ORDER_')),
    ('Purchase (AP_PURCHASE_*)', ('AP_PURCHASE_',)),
    ('Search (AP_SEARCH_*)', ('AP_SEARCH_',)),
    ('Event / promotion (AP_EVENT_*)', ('AP_EVENT_',)),
    ('Review (AP_REVIEW_*)', ('AP_REVIEW_',)),
]
OTHER_GLOBAL_CATEGORY = 'Other'

GLOBAL_VARIABLE_USAGE = {
    'AP_DATA_SITENAME': 'Site name',
    'AP_DATA_COUNTRY': 'Country code',
    'AP_DATA_LANG': 'Language code',
    'AP_DATA_ENV': 'Environment (PRD/DEV)',
    'AP_DATA_CHANNEL': 'Channel (PC/MOBILE)',
    'AP_DATA_PAGETYPE': 'Page type',
    'AP_DATA_BREAD': 'Breadcrumb',
    'AP_DATA_ISLOGIN': 'Logged in flag',
    'AP_DATA_GCID': 'Member ID (hashed)',
    'AP_DATA_CID': 'Integrated member number (hashed)',
    'AP_DATA_ISMEMBER': 'Integrated member flag',
    'AP_DATA_CG': 'Gender',
    'AP_DATA_CD': 'Birth year',
    'AP_DATA_CT': 'Membership grade',
    'AP_DATA_BEAUTYCT': 'Beauty point grade',
    'AP_DATA_LOGINTYPE': 'Login method',
    'AP_DATA_ISEMPLOYEE': 'Employee flag',
    'AP_PRD_CODE': 'Product code',
    'AP_PRD_NAME': 'Product name',
    'AP_PRD_BRAND': 'Product brand',
    'AP_PRD_PRICE': 'Product price (discounted)',
    'AP_PRD_PRDPRICE': 'Product list price',
    'AP_PRD_CATEGORY': 'Product category',
    'AP_ECOMM_CURRENCY': 'Currency code',
    'AP_CART_PRDS': 'Cart product array',
    'AP_ORDER_PRDS': 'Order product array',
    'AP_PURCHASE_ORDERNUM': 'Order number',
    'AP_PURCHASE_PRICE': 'Payment amount',
    'AP_SEARCH_TERM': 'Search term',
    'AP_SEARCH_NUM': 'Search result count',
}

DATALAYER_USAGE = {
    'event': 'Event name',
    'eventCategory': 'Event category',
    'eventAction': 'Event action',
    'eventLabel': 'Event label',
    'event_category': 'Event category',
    'event_action': 'Event action',
    'event_label': 'Event label',
    'quantity': 'Quantity',
    'prdInfo': 'Product information',
}

DATALAYER_PREFIX_USAGE = [
    ('duration.', 'Scroll depth dwell time'),
    ('gtm.', 'GTM built-in'),
]
