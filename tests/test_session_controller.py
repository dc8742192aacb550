#!/usr/bin/env python3
"""
Unit tests for ReportSession: loading with cache fallback, stale loads,
the admin login gate and the staged upload flow.
"""

import io
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import pandas as pd

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.data_models import VIEW_ADMIN, VIEW_REPORT
from utils.import_parsers import ImportParseError
from utils.local_cache import LocalCacheStore
from utils.session_controller import STATUS_ERROR, STATUS_SUCCESS, ReportSession
from utils.settings_store import ADMIN_PASSWORD, ADMIN_USERNAME, SettingsStore
from utils.supabase_gateway import RemoteError


class FakeGateway:
    """In-memory stand-in for SupabaseGateway."""

    def __init__(self, config):
        self.config = config
        self.rows = []
        self.fetch_error = None
        self.replace_error = None
        self.replaced = []
        self.on_fetch = None
        self.closed = False

    def fetch_all(self):
        if self.on_fetch is not None:
            callback, self.on_fetch = self.on_fetch, None
            callback()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.rows)

    def replace_all(self, records):
        if self.replace_error is not None:
            raise self.replace_error
        self.replaced = list(records)
        return len(self.replaced)

    def count_records(self):
        if self.fetch_error is not None:
            raise self.fetch_error
        return len(self.rows)

    def close(self):
        self.closed = True


class TestReportSession(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.gateways = []
        self.cache = LocalCacheStore(self.temp_dir / 'records_cache.json')
        self.session = ReportSession(
            settings=SettingsStore(self.temp_dir / 'settings.json'),
            cache=self.cache,
            gateway_factory=self._make_gateway,
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _make_gateway(self, config):
        gateway = FakeGateway(config)
        self.gateways.append(gateway)
        return gateway

    def test_initial_state(self):
        self.assertEqual(self.session.view, VIEW_REPORT)
        self.assertFalse(self.session.is_logged_in)
        self.assertTrue(self.session.is_loading)
        self.assertFalse(self.session.has_records)

    def test_load_success_caches_records(self):
        self.session.gateway.rows = [{'BUYER': 'Acme'}, {'BUYER': 'Zenith'}]

        self.assertTrue(self.session.load_records())

        self.assertFalse(self.session.is_loading)
        self.assertFalse(self.session.is_syncing)
        self.assertIsNone(self.session.fetch_error)
        self.assertEqual(list(self.session.records['BUYER']), ['Acme', 'Zenith'])
        self.assertEqual(list(self.cache.load_all()['BUYER']), ['Acme', 'Zenith'])

    def test_load_failure_falls_back_to_cache(self):
        self.cache.save_all(pd.DataFrame({'BUYER': ['Cached']}))
        self.session.gateway.fetch_error = RemoteError('Failed to fetch')

        self.session.load_records()

        self.assertEqual(self.session.fetch_error, 'Failed to fetch')
        self.assertEqual(list(self.session.records['BUYER']), ['Cached'])
        self.assertFalse(self.session.is_loading)

    def test_refresh_failure_keeps_current_records(self):
        self.session.gateway.rows = [{'BUYER': 'Live'}]
        self.session.load_records()
        self.cache.save_all(pd.DataFrame({'BUYER': ['Older']}))
        self.session.gateway.fetch_error = RemoteError('Timeout')

        self.session.refresh()

        self.assertEqual(self.session.fetch_error, 'Timeout')
        self.assertEqual(list(self.session.records['BUYER']), ['Live'])

    def test_load_failure_without_cache(self):
        self.session.gateway.fetch_error = RemoteError('Failed to fetch')
        self.session.load_records()
        self.assertFalse(self.session.has_records)
        self.assertIsNotNone(self.session.fetch_error)

    def test_superseded_load_is_discarded(self):
        gateway = self.session.gateway
        gateway.rows = [{'BUYER': 'Old'}]

        def newer_load():
            gateway.rows = [{'BUYER': 'New'}]
            self.assertTrue(self.session.load_records())
            gateway.rows = [{'BUYER': 'Old'}]

        gateway.on_fetch = newer_load

        self.assertFalse(self.session.load_records())
        self.assertEqual(list(self.session.records['BUYER']), ['New'])
        self.assertFalse(self.session.is_syncing)

    def test_commit_supersedes_inflight_load(self):
        gateway = self.session.gateway
        gateway.rows = [{'BUYER': 'Stale'}]
        self.session.pending_records = pd.DataFrame({'BUYER': ['Uploaded']})
        gateway.on_fetch = self.session.commit_pending

        self.assertFalse(self.session.load_records())
        self.assertEqual(list(self.session.records['BUYER']), ['Uploaded'])
        self.assertFalse(self.session.is_loading)
        self.assertFalse(self.session.is_syncing)

    def test_login_gate(self):
        self.assertFalse(self.session.login('admin', 'wrong'))
        self.assertFalse(self.session.is_logged_in)
        self.assertTrue(self.session.login(ADMIN_USERNAME, ADMIN_PASSWORD))
        self.assertTrue(self.session.is_logged_in)

    def test_leaving_admin_logs_out(self):
        self.session.set_view(VIEW_ADMIN)
        self.session.login(ADMIN_USERNAME, ADMIN_PASSWORD)
        self.session.pending_records = pd.DataFrame({'BUYER': ['x']})

        self.session.set_view(VIEW_REPORT)

        self.assertFalse(self.session.is_logged_in)
        self.assertIsNone(self.session.pending_records)

    def test_unknown_view(self):
        with self.assertRaises(ValueError):
            self.session.set_view('settings')

    def test_stage_and_commit(self):
        upload = io.BytesIO(b"IOM NO.,BUYER,DELIVERY QTY. (YDS)\n1001,Acme,\"1,200\"\n1002,Zenith,5\n")

        staged = self.session.stage_file(upload, file_name='report.csv')
        self.assertEqual(len(staged), 2)
        # nothing is pushed until the admin confirms
        self.assertEqual(self.session.gateway.replaced, [])

        self.assertEqual(self.session.commit_pending(), 2)

        self.assertEqual(
            self.session.gateway.replaced[0],
            {'IOM NO.': 1001, 'BUYER': 'Acme', 'DELIVERY QTY. (YDS)': '1,200'},
        )
        self.assertIsNone(self.session.pending_records)
        self.assertEqual(self.session.status.type, STATUS_SUCCESS)
        self.assertEqual(list(self.session.records['BUYER']), ['Acme', 'Zenith'])
        self.assertEqual(list(self.cache.load_all()['BUYER']), ['Acme', 'Zenith'])

    def test_commit_failure_keeps_pending(self):
        pending = pd.DataFrame({'BUYER': ['Acme']})
        self.session.pending_records = pending
        self.session.gateway.replace_error = RemoteError(
            "Could not find the table 'public.delivery_records'", code='PGRST205'
        )

        with self.assertRaises(RemoteError):
            self.session.commit_pending()

        self.assertIs(self.session.pending_records, pending)
        self.assertEqual(self.session.status.type, STATUS_ERROR)
        self.assertTrue(self.session.status.needs_schema_setup)
        self.assertFalse(self.session.has_records)

    def test_commit_without_pending(self):
        self.assertEqual(self.session.commit_pending(), 0)

    def test_bad_upload_sets_error_status(self):
        with self.assertRaises(ImportParseError):
            self.session.stage_file(b'garbage', file_name='report.xlsx')
        self.assertEqual(self.session.status.type, STATUS_ERROR)
        self.assertIsNone(self.session.pending_records)

    def test_cancel_pending(self):
        self.session.pending_records = pd.DataFrame({'BUYER': ['Acme']})
        self.session.cancel_pending()
        self.assertIsNone(self.session.pending_records)
        self.assertIsNone(self.session.status)

    def test_update_config_rebuilds_gateway(self):
        first = self.session.gateway
        self.session.update_config('https://other.supabase.co', 'other-key')

        self.assertTrue(first.closed)
        second = self.session.gateway
        self.assertIsNot(first, second)
        self.assertEqual(second.config.url, 'https://other.supabase.co')
        self.assertEqual(self.session.config.project_ref, 'other')

    def test_connection_test(self):
        self.session.gateway.rows = [{'BUYER': 'Acme'}]
        self.assertEqual(self.session.test_connection().type, STATUS_SUCCESS)

        self.session.gateway.fetch_error = RemoteError('relation does not exist', code='42P01')
        status = self.session.test_connection()
        self.assertEqual(status.type, STATUS_ERROR)
        self.assertTrue(status.needs_schema_setup)


if __name__ == '__main__':
    unittest.main()
