#!/usr/bin/env python3
"""
Tests for the RAWG API client, payload transformation and catalog importer.

Run with:
    python -m pytest tests/test_rawg_client.py
"""
import os
import sys
import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from rawg_client import (
    RAWG_BASE_URL, RawgAPIClient, RawgAPIError, RawgGameImporter,
    extract_steam_app_id, transform_game,
)


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    if status_code >= 400 and status_code != 429:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status_code} error')
    return resp


def _raw_game(rawg_id, name='Portal 2', **extra):
    raw = {
        'id': rawg_id,
        'name': name,
        'slug': name.lower().replace(' ', '-'),
        'released': '2011-04-18',
        'rating': 4.61,
        'metacritic': 95,
        'genres': [{'id': 2, 'name': 'Shooter', 'slug': 'shooter'}],
        'added': 17000,
    }
    raw.update(extra)
    return raw


# ===========================================================================
# RawgAPIClient
# ===========================================================================

class TestRawgAPIClient(unittest.TestCase):

    def setUp(self):
        self.sleep = MagicMock()
        self.client = RawgAPIClient('key123', sleep=self.sleep)

    def test_empty_key_rejected(self):
        with self.assertRaises(ValueError):
            RawgAPIClient('')

    @patch('rawg_client.requests.get')
    def test_get_games_sends_key_and_filters(self, mock_get):
        mock_get.return_value = _response(payload={'results': [{'id': 1}]})
        data = self.client.get_games(page=2, page_size=40)

        self.assertEqual(data['results'], [{'id': 1}])
        url = mock_get.call_args[0][0]
        params = mock_get.call_args[1]['params']
        self.assertEqual(url, RAWG_BASE_URL + '/games')
        self.assertEqual(params['key'], 'key123')
        self.assertEqual(params['page'], 2)
        self.assertEqual(params['page_size'], 40)
        self.assertEqual(params['ordering'], '-added')
        self.sleep.assert_called_once_with(1.0)

    @patch('rawg_client.requests.get')
    def test_detail_endpoints(self, mock_get):
        mock_get.return_value = _response(payload={'results': []})
        self.client.get_game_screenshots(42)
        self.client.get_game_movies(42)
        self.client.get_game_stores(42)
        self.client.get_game_details(42)
        urls = [c[0][0] for c in mock_get.call_args_list]
        self.assertEqual(urls, [
            RAWG_BASE_URL + '/games/42/screenshots',
            RAWG_BASE_URL + '/games/42/movies',
            RAWG_BASE_URL + '/games/42/stores',
            RAWG_BASE_URL + '/games/42',
        ])

    @patch('rawg_client.requests.get')
    def test_retries_after_rate_limit(self, mock_get):
        mock_get.side_effect = [_response(429), _response(payload={'ok': True})]
        self.assertEqual(self.client.get_game_details(1), {'ok': True})
        self.assertEqual(mock_get.call_count, 2)
        self.sleep.assert_any_call(2.0)

    @patch('rawg_client.requests.get')
    def test_retries_after_network_error(self, mock_get):
        mock_get.side_effect = [requests.ConnectionError('down'), _response(payload={'ok': True})]
        self.assertEqual(self.client.get_game_details(1), {'ok': True})

    @patch('rawg_client.requests.get')
    def test_gives_up_after_max_retries(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('down')
        with self.assertRaises(RawgAPIError):
            self.client.get_game_details(1)
        self.assertEqual(mock_get.call_count, 3)

    @patch('rawg_client.requests.get')
    def test_http_error_is_retried_then_raised(self, mock_get):
        mock_get.return_value = _response(500)
        with self.assertRaises(RawgAPIError):
            self.client.get_games()
        self.assertEqual(mock_get.call_count, 3)


# ===========================================================================
# Transformation
# ===========================================================================

class TestTransformGame(unittest.TestCase):

    def test_maps_columns(self):
        values = transform_game(_raw_game(4200, website=''), screenshots=['a.jpg'],
                                trailers=['t.mp4'])
        self.assertEqual(values['rawg_id'], 4200)
        self.assertEqual(values['released'], datetime(2011, 4, 18))
        self.assertEqual(values['rating'], 4.61)
        self.assertEqual(values['metacritic_score'], 95)
        self.assertIsNone(values['website'])
        self.assertEqual(values['screenshots'], ['a.jpg'])
        self.assertEqual(values['trailers'], ['t.mp4'])
        self.assertEqual(values['platforms'], [])

    def test_missing_or_bad_dates(self):
        self.assertIsNone(transform_game(_raw_game(1, released=None))['released'])
        self.assertIsNone(transform_game(_raw_game(1, released='soon'))['released'])

    def test_zero_rating_is_none(self):
        self.assertIsNone(transform_game(_raw_game(1, rating=0))['rating'])


class TestExtractSteamAppId(unittest.TestCase):

    def test_steam_url(self):
        stores = [
            {'store_id': 3, 'url': 'https://store.playstation.com/en-us/product/1'},
            {'store_id': 1, 'url': 'https://store.steampowered.com/app/620/Portal_2/'},
        ]
        self.assertEqual(extract_steam_app_id(stores), 620)

    def test_store_id_fallback(self):
        stores = [{'store_id': 11, 'url': 'https://example.com/app/400'}]
        self.assertEqual(extract_steam_app_id(stores), 400)

    def test_no_steam(self):
        self.assertIsNone(extract_steam_app_id([{'store_id': 3, 'url': 'https://psn/x'}]))
        self.assertIsNone(extract_steam_app_id([]))

    def test_steam_without_app_path(self):
        self.assertIsNone(extract_steam_app_id([{'store_id': 1, 'url': ''}]))


# ===========================================================================
# RawgGameImporter
# ===========================================================================

class TestRawgGameImporter(unittest.TestCase):

    def setUp(self):
        database.configure('sqlite://')
        database.init_db()
        self.client = MagicMock(spec=RawgAPIClient)
        self.client.get_game_screenshots.return_value = {'results': [{'image': 's1.jpg'}]}
        self.client.get_game_movies.return_value = {
            'results': [{'data': {'max': 'm.mp4'}}, {'preview': 'p.jpg'}]}
        self.client.get_game_stores.return_value = {
            'results': [{'store_id': 1, 'url': 'https://store.steampowered.com/app/620/'}]}
        self.importer = RawgGameImporter(self.client, database.session_scope)

    def test_imports_then_updates(self):
        self.client.get_games.return_value = {
            'results': [_raw_game(1, 'Portal 2'), _raw_game(2, 'Half-Life 2')]}

        stats = self.importer.run(pages=5, page_size=20)
        self.assertEqual(stats, {'processed': 2, 'inserted': 2, 'updated': 0, 'errors': 0})
        self.client.get_games.assert_called_once_with(1, 20)

        with database.session_scope() as db:
            game = database.get_game_by_slug(db, 'portal-2')
            self.assertEqual(game.steam_app_id, 620)
            self.assertEqual(game.screenshots, ['s1.jpg'])
            self.assertEqual(game.trailers, ['m.mp4', 'p.jpg'])

        stats = self.importer.run(pages=1)
        self.assertEqual(stats['updated'], 2)
        self.assertEqual(stats['inserted'], 0)

    def test_page_size_is_capped(self):
        self.client.get_games.return_value = {'results': []}
        self.importer.run(pages=1, page_size=100)
        self.client.get_games.assert_called_once_with(1, 40)

    def test_page_errors_are_counted(self):
        self.client.get_games.side_effect = [
            RawgAPIError('boom'),
            {'results': [_raw_game(3, 'Doom')]},
        ]
        stats = self.importer.run(pages=2, page_size=20)
        self.assertEqual(stats['errors'], 1)
        self.assertEqual(stats['inserted'], 1)

    def test_media_failures_are_tolerated(self):
        self.client.get_game_movies.side_effect = RawgAPIError('no movies')
        self.client.get_games.return_value = {'results': [_raw_game(5, 'Celeste')]}
        stats = self.importer.run(pages=1)
        self.assertEqual(stats['inserted'], 1)
        with database.session_scope() as db:
            self.assertEqual(database.get_game_by_slug(db, 'celeste').trailers, [])

    def test_bad_game_counts_as_error(self):
        self.client.get_games.return_value = {'results': [{'name': 'No id'}]}
        stats = self.importer.run(pages=1)
        self.assertEqual(stats['errors'], 1)
        self.assertEqual(stats['processed'], 0)


if __name__ == '__main__':
    unittest.main()
