"""Raw review lines shaped like the Wine Enthusiast dump."""


def make_raw(id: int, **overrides) -> dict:
    raw = {
        "id": id,
        "points": "87",
        "title": f"Test Winery {id} 2015 Red (Tuscany)",
        "description": "Ripe cherry and plum with firm tannins.",
        "price": 20.0,
        "variety": "Sangiovese",
        "winery": f"Test Winery {id}",
        "country": "Italy",
        "province": "Tuscany",
        "region_1": "Chianti",
        "region_2": None,
        "taster_name": "Kerin O'Keefe",
        "taster_twitter_handle": "@kerinokeefe",
        "designation": None,
    }
    raw.update(overrides)
    return raw


CHIANTI = {
    "id": 40825,
    "points": "90",
    "title": "Castello San Donato in Perano 2009 Riserva (Chianti Classico)",
    "country": "Italy",
    "province": "Tuscany",
    "taster_name": "Kerin O'Keefe",
}
