#!/usr/bin/env python3
"""
Unit tests for SupabaseGateway using a mocked requests session.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

import requests

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils.settings_store import BackendConfig
from utils.supabase_gateway import (
    FETCH_PAGE_SIZE,
    INSERT_BATCH_SIZE,
    RemoteError,
    SupabaseGateway,
)

CONFIG = BackendConfig(url='https://example.supabase.co', key='anon-key')


def make_response(status_code=200, json_body=None, headers=None, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    response.reason = 'Error' if status_code >= 400 else 'OK'
    response.text = text
    if json_body is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = json_body
    return response


class TestSupabaseGateway(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.gateway = SupabaseGateway(CONFIG, session=self.session)

    def _calls(self, method):
        return [c for c in self.session.request.call_args_list if c.args[0] == method]

    def test_headers_and_url(self):
        self.session.request.return_value = make_response(json_body=[])
        self.gateway.fetch_all()

        call = self.session.request.call_args
        self.assertEqual(call.args[1], 'https://example.supabase.co/rest/v1/delivery_records')
        self.assertEqual(call.kwargs['headers']['apikey'], 'anon-key')
        self.assertEqual(call.kwargs['headers']['Authorization'], 'Bearer anon-key')

    def test_replace_all_deletes_then_inserts_in_batches(self):
        self.session.request.return_value = make_response(status_code=201)
        records = [{'IOM NO.': i, 'BUYER': 'Acme'} for i in range(85)]

        inserted = self.gateway.replace_all(records)

        self.assertEqual(inserted, 85)
        methods = [c.args[0] for c in self.session.request.call_args_list]
        self.assertEqual(methods, ['DELETE', 'POST', 'POST', 'POST'])
        self.assertEqual(self._calls('DELETE')[0].kwargs['params'], {'id': 'neq.-1'})

        batch_sizes = [len(c.kwargs['json']) for c in self._calls('POST')]
        self.assertEqual(batch_sizes, [INSERT_BATCH_SIZE, INSERT_BATCH_SIZE, 5])
        first_row = self._calls('POST')[0].kwargs['json'][0]
        self.assertEqual(first_row, {'iom_no': 0, 'buyer': 'Acme'})

    def test_replace_all_stops_at_first_failed_batch(self):
        error = make_response(
            status_code=400,
            json_body={'message': 'column "foo" does not exist', 'code': '42703', 'details': None},
        )
        self.session.request.side_effect = [
            make_response(status_code=204),
            make_response(status_code=201),
            error,
            make_response(status_code=201),
        ]
        records = [{'BUYER': 'Acme'} for _ in range(85)]

        with self.assertRaises(RemoteError) as ctx:
            self.gateway.replace_all(records)

        self.assertEqual(ctx.exception.code, '42703')
        self.assertTrue(ctx.exception.needs_schema_setup)
        self.assertEqual(len(self._calls('POST')), 2)

    def test_replace_all_with_no_records_only_deletes(self):
        self.session.request.return_value = make_response(status_code=204)
        self.assertEqual(self.gateway.replace_all([]), 0)
        self.assertEqual(len(self.session.request.call_args_list), 1)

    def test_delete_failure_aborts_before_insert(self):
        self.session.request.return_value = make_response(
            status_code=404,
            json_body={'message': "Could not find the table 'public.delivery_records'", 'code': 'PGRST205'},
        )
        with self.assertRaises(RemoteError) as ctx:
            self.gateway.replace_all([{'BUYER': 'Acme'}])
        self.assertEqual(ctx.exception.code, 'PGRST205')
        self.assertEqual(self._calls('POST'), [])

    def test_fetch_all_pages_and_maps_to_display(self):
        first_page = [{'id': i, 'buyer': 'Acme'} for i in range(FETCH_PAGE_SIZE)]
        second_page = [{'id': FETCH_PAGE_SIZE, 'buyer': 'Zenith', 'delivery_qty_yds': 12.5}]
        self.session.request.side_effect = [
            make_response(json_body=first_page),
            make_response(json_body=second_page),
        ]

        rows = self.gateway.fetch_all()

        self.assertEqual(len(rows), FETCH_PAGE_SIZE + 1)
        self.assertEqual(rows[-1], {'id': FETCH_PAGE_SIZE, 'BUYER': 'Zenith', 'DELIVERY QTY. (YDS)': 12.5})
        ranges = [c.kwargs['headers']['Range'] for c in self.session.request.call_args_list]
        self.assertEqual(ranges, ['0-999', '1000-1999'])
        self.assertEqual(
            self.session.request.call_args.kwargs['params'], {'select': '*', 'order': 'id.asc'}
        )

    def test_fetch_all_stops_on_range_not_satisfiable(self):
        first_page = [{'id': i} for i in range(FETCH_PAGE_SIZE)]
        self.session.request.side_effect = [
            make_response(json_body=first_page),
            make_response(status_code=416, json_body={'message': 'Requested range not satisfiable'}),
        ]
        self.assertEqual(len(self.gateway.fetch_all()), FETCH_PAGE_SIZE)

    def test_transport_error_becomes_remote_error(self):
        self.session.request.side_effect = requests.exceptions.ConnectionError('connection refused')
        with self.assertRaises(RemoteError) as ctx:
            self.gateway.fetch_all()
        self.assertIsNone(ctx.exception.code)
        self.assertIn('example.supabase.co', str(ctx.exception))

    def test_count_records_reads_content_range(self):
        self.session.request.return_value = make_response(
            status_code=206, json_body=[{'id': 1}], headers={'Content-Range': '0-0/85'}
        )
        self.assertEqual(self.gateway.count_records(), 85)
        headers = self.session.request.call_args.kwargs['headers']
        self.assertEqual(headers['Prefer'], 'count=exact')

    def test_count_records_without_total(self):
        self.session.request.return_value = make_response(
            json_body=[], headers={'Content-Range': '*/*'}
        )
        self.assertEqual(self.gateway.count_records(), 0)

    def test_close_releases_session(self):
        self.gateway.close()
        self.session.close.assert_called_once()


class TestRemoteError(unittest.TestCase):

    def test_str_includes_details_and_code(self):
        error = RemoteError('relation does not exist', details='public.x', code='42P01')
        self.assertEqual(str(error), 'relation does not exist | Details: public.x | Code: 42P01')
        self.assertTrue(error.needs_schema_setup)

    def test_str_message_only(self):
        self.assertEqual(str(RemoteError('boom')), 'boom')
        self.assertFalse(RemoteError('boom').needs_schema_setup)

    def test_from_response_without_json(self):
        error = RemoteError.from_response(make_response(status_code=502, text='Bad gateway'))
        self.assertEqual(error.message, 'HTTP 502: Bad gateway')
        self.assertEqual(error.status_code, 502)
        self.assertIsNone(error.code)

    def test_to_dict(self):
        error = RemoteError('m', details='d', code='c', hint='h')
        self.assertEqual(error.to_dict(), {'message': 'm', 'details': 'd', 'code': 'c'})


if __name__ == '__main__':
    unittest.main()
