"""Music catalog providers.

A provider hands the engine the songs a game is dealt from. The static
catalog ships with the server; the Spotify catalog reads a playlist using
the client-credentials grant.
"""

import logging
import time
from typing import List, Optional

import httpx

from app.models import CatalogItem

logger = logging.getLogger(__name__)


class CatalogUnavailable(Exception):
    """The provider could not produce a deck."""


class CatalogProvider:
    name = 'abstract'

    def fetch_items(self) -> List[CatalogItem]:
        raise NotImplementedError


STATIC_DECK = [
    CatalogItem('Hey Jude', 'The Beatles', 1968, catalog_id='static-01'),
    CatalogItem('Imagine', 'John Lennon', 1971, catalog_id='static-02'),
    CatalogItem('Stairway to Heaven', 'Led Zeppelin', 1971, catalog_id='static-03'),
    CatalogItem('Dancing Queen', 'ABBA', 1976, catalog_id='static-04'),
    CatalogItem('Bohemian Rhapsody', 'Queen', 1975, catalog_id='static-05'),
    CatalogItem('Hotel California', 'Eagles', 1976, catalog_id='static-06'),
    CatalogItem('Stayin\' Alive', 'Bee Gees', 1977, catalog_id='static-07'),
    CatalogItem('Heart of Glass', 'Blondie', 1979, catalog_id='static-08'),
    CatalogItem('Another One Bites the Dust', 'Queen', 1980, catalog_id='static-09'),
    CatalogItem('Thriller', 'Michael Jackson', 1982, catalog_id='static-10'),
    CatalogItem('Billie Jean', 'Michael Jackson', 1983, catalog_id='static-11'),
    CatalogItem('Like a Virgin', 'Madonna', 1984, catalog_id='static-12'),
    CatalogItem('Take On Me', 'a-ha', 1985, catalog_id='static-13'),
    CatalogItem('Livin\' on a Prayer', 'Bon Jovi', 1986, catalog_id='static-14'),
    CatalogItem('Sweet Child O\' Mine', 'Guns N\' Roses', 1987, catalog_id='static-15'),
    CatalogItem('Like a Prayer', 'Madonna', 1989, catalog_id='static-16'),
    CatalogItem('Nothing Compares 2 U', 'Sinéad O\'Connor', 1990, catalog_id='static-17'),
    CatalogItem('Smells Like Teen Spirit', 'Nirvana', 1991, catalog_id='static-18'),
    CatalogItem('I Will Always Love You', 'Whitney Houston', 1992, catalog_id='static-19'),
    CatalogItem('Zombie', 'The Cranberries', 1994, catalog_id='static-20'),
    CatalogItem('Wonderwall', 'Oasis', 1995, catalog_id='static-21'),
    CatalogItem('Wannabe', 'Spice Girls', 1996, catalog_id='static-22'),
    CatalogItem('Bitter Sweet Symphony', 'The Verve', 1997, catalog_id='static-23'),
    CatalogItem('...Baby One More Time', 'Britney Spears', 1998, catalog_id='static-24'),
    CatalogItem('Livin\' la Vida Loca', 'Ricky Martin', 1999, catalog_id='static-25'),
    CatalogItem('Yellow', 'Coldplay', 2000, catalog_id='static-26'),
    CatalogItem('Lose Yourself', 'Eminem', 2002, catalog_id='static-27'),
    CatalogItem('Crazy in Love', 'Beyoncé', 2003, catalog_id='static-28'),
    CatalogItem('Mr. Brightside', 'The Killers', 2004, catalog_id='static-29'),
    CatalogItem('Crazy', 'Gnarls Barkley', 2006, catalog_id='static-30'),
    CatalogItem('Umbrella', 'Rihanna', 2007, catalog_id='static-31'),
    CatalogItem('Poker Face', 'Lady Gaga', 2008, catalog_id='static-32'),
    CatalogItem('Rolling in the Deep', 'Adele', 2010, catalog_id='static-33'),
    CatalogItem('Somebody That I Used to Know', 'Gotye', 2011, catalog_id='static-34'),
    CatalogItem('Get Lucky', 'Daft Punk', 2013, catalog_id='static-35'),
    CatalogItem('Uptown Funk', 'Mark Ronson', 2014, catalog_id='static-36'),
    CatalogItem('Shape of You', 'Ed Sheeran', 2017, catalog_id='static-37'),
    CatalogItem('Bad Guy', 'Billie Eilish', 2019, catalog_id='static-38'),
    CatalogItem('Blinding Lights', 'The Weeknd', 2019, catalog_id='static-39'),
    CatalogItem('As It Was', 'Harry Styles', 2022, catalog_id='static-40'),
]


class StaticCatalog(CatalogProvider):
    name = 'static'

    def __init__(self, items: Optional[List[CatalogItem]] = None):
        self._items = list(STATIC_DECK if items is None else items)

    def fetch_items(self) -> List[CatalogItem]:
        return list(self._items)


def _track_to_item(track) -> Optional[CatalogItem]:
    if not track or not track.get('name'):
        return None
    release_date = ((track.get('album') or {}).get('release_date') or '')[:4]
    if not release_date.isdigit() or int(release_date) == 0:
        return None
    artists = ', '.join(a.get('name', '') for a in track.get('artists') or [] if a.get('name'))
    return CatalogItem(
        title=track['name'],
        artist=artists,
        year=int(release_date),
        preview_url=track.get('preview_url') or '',
        catalog_id=track.get('id') or '',
    )


class SpotifyCatalog(CatalogProvider):
    name = 'spotify'
    TOKEN_URL = 'https://accounts.spotify.com/api/token'
    API_BASE = 'https://api.spotify.com/v1'
    TRACK_FIELDS = 'items(track(id,name,preview_url,artists(name),album(release_date))),next'

    def __init__(self, client_id: str, client_secret: str, playlist_id: str,
                 timeout: float = 20.0, transport: Optional[httpx.BaseTransport] = None,
                 clock=time.time):
        self.client_id = client_id
        self.client_secret = client_secret
        self.playlist_id = playlist_id
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def _access_token(self, client: httpx.Client) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token
        r = client.post(
            self.TOKEN_URL,
            data={'grant_type': 'client_credentials'},
            auth=(self.client_id, self.client_secret),
        )
        r.raise_for_status()
        token = r.json()
        self._token = token['access_token']
        # refresh a little early
        self._token_expires_at = self._clock() + int(token.get('expires_in', 3600)) - 30
        logger.info('[spotify] access token refreshed expires_in=%s', token.get('expires_in'))
        return self._token

    def fetch_items(self) -> List[CatalogItem]:
        if not (self.client_id and self.client_secret and self.playlist_id):
            raise CatalogUnavailable('Spotify catalog is not configured')
        items: List[CatalogItem] = []
        seen = set()
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                headers = {'Authorization': f'Bearer {self._access_token(client)}'}
                url = f'{self.API_BASE}/playlists/{self.playlist_id}/tracks'
                params = {'limit': 100, 'fields': self.TRACK_FIELDS}
                while url:
                    r = client.get(url, headers=headers, params=params)
                    r.raise_for_status()
                    page = r.json()
                    for entry in page.get('items') or []:
                        item = _track_to_item(entry.get('track'))
                        if item is None or (item.catalog_id and item.catalog_id in seen):
                            continue
                        seen.add(item.catalog_id)
                        items.append(item)
                    # the next link already carries the query string
                    url = page.get('next')
                    params = None
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning('[spotify] playlist fetch failed playlist=%s error=%s', self.playlist_id, exc)
            raise CatalogUnavailable(f'Spotify request failed: {exc}') from exc
        logger.info('[spotify] fetched playlist=%s tracks=%d', self.playlist_id, len(items))
        return items


def build_catalog(config) -> CatalogProvider:
    provider = (config.get('CATALOG_PROVIDER') or 'static').lower()
    if provider == 'static':
        return StaticCatalog()
    if provider == 'spotify':
        return SpotifyCatalog(
            client_id=config.get('SPOTIFY_CLIENT_ID', ''),
            client_secret=config.get('SPOTIFY_CLIENT_SECRET', ''),
            playlist_id=config.get('SPOTIFY_PLAYLIST_ID', ''),
            timeout=float(config.get('CATALOG_TIMEOUT_SEC', 20)),
        )
    raise ValueError(f'Unknown CATALOG_PROVIDER: {provider}')
