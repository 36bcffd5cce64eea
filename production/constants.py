# production/constants.py

# Units per box for products that are reported in boxes. Anything missing is sold by the unit.
PRODUCT_PACK_SIZE = {
    "BUR11": 30, "BUR13": 40, "BUR4": 2, "BUR5": 8, "BUR6": 3, "BUR7": 10,
    "MOZ28": 8, "MOZ30": 9, "MOZ5": 12, "MOZ6": 9, "MOZ8": 10,
    "RIC3": 6,
    "MOH1": 9, "MOH10": 3,
    "PACK9": 9,
}

# Raw agent (zone) codes -> client label. Several branch codes collapse into one client.
CLIENT_MAPPING = {
    "24": "FILIPPO",
    "27": "PINGÜINO",
    "26": "TENERIFE SUR",
    "23": "LA PALMA",
    "15": "TENERIFE NORTE",

    # GRAN CANARIA = 10, 14, 5, 0, 8 (also sent zero-padded)
    "10": "GRAN CANARIA",
    "14": "GRAN CANARIA",
    "5": "GRAN CANARIA", "05": "GRAN CANARIA",
    "0": "GRAN CANARIA", "00": "GRAN CANARIA",
    "8": "GRAN CANARIA", "08": "GRAN CANARIA",
}

ZONE_LABEL = "ZONA {code}"
DEFAULT_AGENT_CODE = "0"
DEFAULT_AGENT_NAME = "UNKNOWN"

# history periods in days
HISTORY_PERIODS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}

TOP_PRODUCTS_LIMIT = 15

# event types sent on the live channel
EVENT_ORDER = "order"
EVENT_STOCK = "stock"
EVENT_RESET = "reset"
RESET_CODE = "RESET"

# Largest unit count a quantity or stock column holds (32-bit signed integer).
MAX_UNITS = 2_147_483_647
