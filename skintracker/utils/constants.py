"""
Constants used across the skin tracker.
"""

# Every weapon a skin can belong to. Update if new weapons are added to the game.
WEAPONS = (
    "Ares",
    "Bandit",
    "Bucky",
    "Bulldog",
    "Classic",
    "Frenzy",
    "Ghost",
    "Guardian",
    "Judge",
    "Marshal",
    "Melee",
    "Odin",
    "Operator",
    "Outlaw",
    "Phantom",
    "Sheriff",
    "Shorty",
    "Spectre",
    "Stinger",
    "Vandal",
)

# Display groups used when laying out a loadout
WEAPON_GROUPS = (
    ("SIDEARMS", ("Classic", "Shorty", "Frenzy", "Ghost", "Bandit", "Sheriff")),
    ("SMGS", ("Stinger", "Spectre")),
    ("SHOTGUNS", ("Bucky", "Judge")),
    ("RIFLES", ("Bulldog", "Guardian", "Phantom", "Vandal")),
    ("MELEE", ("Melee",)),
    ("MACHINE GUNS", ("Ares", "Odin")),
    ("SNIPER RIFLES", ("Marshal", "Outlaw", "Operator")),
)

# Pagination
ITEMS_PER_PAGE = 20
MAX_ITEMS_PER_PAGE = 100

# Loadouts
MAX_LOADOUTS_PER_USER = 8
MAX_LOADOUT_NAME_LENGTH = 26
DEFAULT_LOADOUT_NAME = "Unnamed Loadout"

# Auth
MIN_PASSWORD_LENGTH = 8
TOKEN_EXPIRATION_MINUTES = 60
DELETE_ACCOUNT_CONFIRMATION = "DELETE"

# Content tier UUID -> display name and icon
UNKNOWN_TIER = "Unknown"
TIER_ICONS = {
    "0cebb8be-46d7-c12a-d306-e9907bfc5a25": {
        "name": "Deluxe Edition",
        "icon": "https://media.valorant-api.com/contenttiers/0cebb8be-46d7-c12a-d306-e9907bfc5a25/displayicon.png",
    },
    "e046854e-406c-37f4-6607-19a9ba8426fc": {
        "name": "Exclusive Edition",
        "icon": "https://media.valorant-api.com/contenttiers/e046854e-406c-37f4-6607-19a9ba8426fc/displayicon.png",
    },
    "60bca009-4182-7998-dee7-b8a2558dc369": {
        "name": "Premium Edition",
        "icon": "https://media.valorant-api.com/contenttiers/60bca009-4182-7998-dee7-b8a2558dc369/displayicon.png",
    },
    "12683d76-48d7-84a3-4e09-6985794f0445": {
        "name": "Select Edition",
        "icon": "https://media.valorant-api.com/contenttiers/12683d76-48d7-84a3-4e09-6985794f0445/displayicon.png",
    },
    "411e4a55-4e59-7757-41f0-86a53f101bb5": {
        "name": "Ultra Edition",
        "icon": "https://media.valorant-api.com/contenttiers/411e4a55-4e59-7757-41f0-86a53f101bb5/displayicon.png",
    },
}


def get_tier_info(tier_id: str) -> dict:
    """Look up tier display data; unknown tiers get a generic label and no icon."""
    info = TIER_ICONS.get(tier_id)
    if info is None:
        return {"name": UNKNOWN_TIER, "icon": None}
    return dict(info)
