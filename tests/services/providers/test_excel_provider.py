import unittest
from unittest.mock import patch, MagicMock

from tests.fakes import FakeGraphClient

from tutasks.config.config import EXCEL_ONLINE

# Module to test
from tutasks.services.providers import excel
from tutasks.services.providers.errors import (
    InvalidSheetIdError,
    ProvisioningError,
    RemoteAPIError,
    TaskNotFoundError,
)
from tutasks.services.providers.graph import GraphAPIError
from tutasks.services.providers.models import (
    AddTaskRequest,
    BatchAppendRequest,
    CreateSpreadsheetRequest,
    DeleteTaskRequest,
    UpdateTaskRequest,
)

HEADER = ['UID', 'Task Number', 'Description', 'Date', 'Time']
ITEM_ID = '01ABCDEF!123'
ITEM_PATH = '/me/drive/items/01ABCDEF%21123/workbook'
GOOGLE_ID = '1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms'


def _add_request(**overrides):
    fields = dict(sheet_id=ITEM_ID, month_sheet_name='2024-01', number='T-001',
                  description='Draft release notes', date='2024-01-15', time='2.5')
    fields.update(overrides)
    return AddTaskRequest(**fields)


class TestLooksLikeGoogleSheetId(unittest.TestCase):

    def test_google_id_detected(self):
        self.assertTrue(excel.looks_like_google_sheet_id(GOOGLE_ID))

    def test_onedrive_ids_pass(self):
        self.assertFalse(excel.looks_like_google_sheet_id('b!xyz-abc'))
        self.assertFalse(excel.looks_like_google_sheet_id(ITEM_ID))
        self.assertFalse(excel.looks_like_google_sheet_id(''))

    def test_short_alphanumeric_id_passes(self):
        self.assertFalse(excel.looks_like_google_sheet_id('ABC123'))


@patch('tutasks.services.providers.excel.get_config')
class TestExcelProvider(unittest.TestCase):

    def setUp(self):
        self.client = FakeGraphClient()
        self.workbook = self.client.add_workbook(ITEM_ID, 'My Tasks.xlsx')
        self.provider = excel.ExcelProvider(self.client)

    # --- workbooks ---

    def test_list_spreadsheets_filters_and_strips_suffix(self, mock_get_config):
        self.client.files.append({'id': 'folder1', 'name': 'Archive.xlsx', 'folder': {}})
        self.client.files.append({'id': 'doc1', 'name': 'notes.docx', 'file': {}})

        result = self.provider.list_spreadsheets()

        self.assertEqual([(s.id, s.name) for s in result], [(ITEM_ID, 'My Tasks')])
        self.assertEqual(self.client.calls[0], ('GET', "/me/drive/root/search(q='.xlsx')"))

    def test_create_spreadsheet(self, mock_get_config):
        mock_get_config.return_value.app_version = '1.0.0'

        result = self.provider.create_spreadsheet(CreateSpreadsheetRequest(name=' Work '))

        self.assertEqual(result.name, 'Work')
        post = self.client.calls[0]
        self.assertEqual(post[1], '/me/drive/root/children')
        self.assertEqual(post[2], {'name': 'Work.xlsx', 'file': {}, '@microsoft.graph.conflictBehavior': 'rename'})
        self.assertEqual(self.client.workbooks[result.id]['Sheet1'], [['created:tutasks.com version:1.0.0']])

    def test_create_spreadsheet_blank_name(self, mock_get_config):
        mock_get_config.return_value.app_version = '1.0.0'

        result = self.provider.create_spreadsheet(CreateSpreadsheetRequest(name=''))

        self.assertEqual(result.name, 'New Task Sheet')

    # --- identifier ---

    def test_check_identifier_match_is_idempotent(self, mock_get_config):
        self.workbook['Sheet1'] = [['created:tutasks.com version:2.0.1']]

        first = self.provider.check_identifier(ITEM_ID)
        second = self.provider.check_identifier(ITEM_ID)

        self.assertEqual(first, {'hasIdentifier': True, 'version': '2.0.1'})
        self.assertEqual(first, second)

    def test_check_identifier_numeric_cell(self, mock_get_config):
        self.workbook['Sheet1'] = [[42]]

        self.assertEqual(self.provider.check_identifier(ITEM_ID), {'hasIdentifier': False})

    def test_check_identifier_google_id(self, mock_get_config):
        self.assertEqual(self.provider.check_identifier(GOOGLE_ID), {'hasIdentifier': False})
        self.assertEqual(self.client.calls, [])

    def test_check_identifier_read_error_fails_closed(self, mock_get_config):
        self.assertEqual(self.provider.check_identifier('unknown-item'), {'hasIdentifier': False})

    # --- add ---

    def test_add_task_creates_worksheet_with_header(self, mock_get_config):
        result = self.provider.add_task(_add_request())

        self.assertTrue(result['success'])
        self.assertGreaterEqual(len(result['uid']), 36)
        self.assertEqual(self.workbook['2024-01'], [
            HEADER,
            [result['uid'], 'T-001', 'Draft release notes', '2024-01-15', '2.5'],
        ])
        self.assertIn(('POST', f"{ITEM_PATH}/worksheets", {'name': '2024-01'}), self.client.calls)
        self.assertIn(('PATCH', f"{ITEM_PATH}/worksheets/2024-01/range(address='A1:E1')", {'values': [HEADER]}),
                      self.client.calls)

    def test_add_task_appends_after_used_range(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', '1', 'a', '2024-01-01', '1'], ['u2', '2', 'b', '2024-01-02', '2']]

        self.provider.add_task(_add_request(uid='u3'))

        self.assertEqual(self.workbook['2024-01'][3][0], 'u3')
        writes = [c for c in self.client.calls if c[0] == 'PATCH']
        self.assertEqual(writes[-1][1], f"{ITEM_PATH}/worksheets/2024-01/range(address='A4:E4')")
        self.assertNotIn(('POST', f"{ITEM_PATH}/worksheets", {'name': '2024-01'}), self.client.calls)

    def test_add_task_never_writes_over_header(self, mock_get_config):
        """A worksheet that exists but is blank still gets its first task on row 2."""
        self.workbook['2024-01'] = []

        self.provider.add_task(_add_request(uid='u1'))

        self.assertEqual(self.workbook['2024-01'][1][0], 'u1')

    def test_add_task_used_range_failure_propagates(self, mock_get_config):
        """An unreadable used range must not be guessed at; the existing rows stay intact."""
        rows = [list(HEADER), ['u1', '1', 'a', '2024-01-01', '1'], ['u2', '2', 'b', '2024-01-02', '2']]
        self.workbook['2024-01'] = [list(row) for row in rows]
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets/2024-01/usedRange(valuesOnly=true)")

        with self.assertRaises(RemoteAPIError) as ctx:
            self.provider.add_task(_add_request(uid='u9'))

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(self.workbook['2024-01'], rows)
        self.assertFalse([c for c in self.client.calls if c[0] == 'PATCH'])

    def test_batch_append_used_range_failure_propagates(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', '1', 'a', '2024-01-01', '1']]
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets/2024-01/usedRange(valuesOnly=true)")

        with self.assertRaises(GraphAPIError):
            self.provider.batch_append(BatchAppendRequest(ITEM_ID, '2024-01', [['u2', '2', 'b', '2024-01-02', '2']]))
        self.assertEqual(len(self.workbook['2024-01']), 2)

    def test_add_task_after_used_range_starting_below_row_one(self, mock_get_config):
        """A worksheet whose header is missing has a used range that starts on row 2."""
        self.workbook['2024-01'] = [[], ['u1', '1', 'a', '2024-01-01', '1'], ['u2', '2', 'b', '2024-01-02', '2']]

        self.provider.add_task(_add_request(uid='u3'))

        self.assertEqual([row[0] for row in self.workbook['2024-01'][1:]], ['u1', 'u2', 'u3'])
        writes = [c for c in self.client.calls if c[0] == 'PATCH']
        self.assertEqual(writes[-1][1], f"{ITEM_PATH}/worksheets/2024-01/range(address='A4:E4')")

    def test_add_task_rejects_google_id(self, mock_get_config):
        with self.assertRaises(InvalidSheetIdError):
            self.provider.add_task(_add_request(sheet_id=GOOGLE_ID))
        self.assertEqual(self.client.calls, [])

    def test_add_task_provisioning_failure(self, mock_get_config):
        client = MagicMock()
        client.get.side_effect = GraphAPIError("Graph API error 404: missing", status_code=404)
        client.post.side_effect = GraphAPIError("Graph API error 403: denied", status_code=403)
        provider = excel.ExcelProvider(client)

        with self.assertRaises(ProvisioningError) as ctx:
            provider.add_task(_add_request())
        self.assertEqual(ctx.exception.status_code, 403)
        client.patch.assert_not_called()

    def test_provisioning_failure_logs_provider_tag(self, mock_get_config):
        client = MagicMock()
        client.get.side_effect = GraphAPIError("Graph API error 404: missing", status_code=404)
        client.post.side_effect = GraphAPIError("Graph API error 403: denied", status_code=403)
        provider = excel.ExcelProvider(client)

        with self.assertLogs('tutasks.utils.error_utils', level='ERROR') as logs:
            with self.assertRaises(ProvisioningError):
                provider.add_task(_add_request())
        self.assertIn(f"Provider: {EXCEL_ONLINE} | Sheet ID: {ITEM_ID}", logs.output[0])

    def test_add_task_header_write_failure(self, mock_get_config):
        client = MagicMock()
        client.get.side_effect = GraphAPIError("Graph API error 404: missing", status_code=404)
        client.post.return_value = {'name': '2024-01'}
        client.patch.side_effect = GraphAPIError("Graph API error 409: conflict", status_code=409)
        provider = excel.ExcelProvider(client)

        with self.assertRaises(ProvisioningError):
            provider.add_task(_add_request())
        client.patch.assert_called_once()

    # --- batch append ---

    def test_batch_append_continues_row_numbering(self, mock_get_config):
        self.workbook['2024-02'] = [list(HEADER), ['u1', '1', 'a', '2024-02-01', '1']]
        values = [['u2', '2', 'b', '2024-02-02', '2'], ['u3', '3', 'c', '2024-02-03', '3']]

        self.provider.batch_append(BatchAppendRequest(ITEM_ID, '2024-02', values))

        self.assertEqual([row[0] for row in self.workbook['2024-02']], ['UID', 'u1', 'u2', 'u3'])
        self.assertEqual(self.client.calls[-1],
                         ('PATCH', f"{ITEM_PATH}/worksheets/2024-02/range(address='A3:E4')", {'values': values}))

    def test_batch_append_into_new_worksheet(self, mock_get_config):
        values = [['u1', '1', 'a', '2024-03-01', '1']]

        self.provider.batch_append(BatchAppendRequest(ITEM_ID, '2024-03', values))

        self.assertEqual(self.workbook['2024-03'], [HEADER, values[0]])

    def test_batch_append_pads_and_truncates_rows_to_five_cells(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER)]
        values = [['u1', '1', 'a'], ['u2', '2', 'b', '2024-01-02', '2', 'extra']]

        result = self.provider.batch_append(BatchAppendRequest(ITEM_ID, '2024-01', values))

        self.assertEqual(result, {'success': True})
        self.assertEqual(self.workbook['2024-01'][1:], [
            ['u1', '1', 'a', '', ''],
            ['u2', '2', 'b', '2024-01-02', '2'],
        ])
        self.assertEqual(self.client.calls[-1][1], f"{ITEM_PATH}/worksheets/2024-01/range(address='A2:E3')")

    # --- update / delete ---

    def test_update_task(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', 'T-1', 'one', 45306, 1], ['u2', 'T-2', 'two', 45307, 2]]

        result = self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', 'u2', 'T-2', 'edited', '2024-01-20', '4'))

        self.assertEqual(result, {'success': True})
        self.assertEqual(self.workbook['2024-01'][2], ['u2', 'T-2', 'edited', '2024-01-20', '4'])
        self.assertEqual(self.workbook['2024-01'][1][0], 'u1')

    def test_update_task_numeric_uid_cell(self, mock_get_config):
        """A uid Excel coerced to a number still matches its text form."""
        self.workbook['2024-01'] = [list(HEADER), [12345, 'T-1', 'one', '2024-01-01', '1']]

        self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', '12345', 'T-1', 'one', '2024-01-01', '2'))

        self.assertEqual(self.workbook['2024-01'][1][4], '2')

    def test_update_task_not_found_in_empty_partition(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER)]

        with self.assertRaises(TaskNotFoundError):
            self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', 'u1', '1', 'x', '2024-01-01', '1'))
        self.assertEqual(self.workbook['2024-01'], [HEADER])

    def test_update_task_missing_worksheet(self, mock_get_config):
        with self.assertRaises(TaskNotFoundError):
            self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2031-01', 'u1', '1', 'x', '2031-01-01', '1'))
        self.assertNotIn('2031-01', self.workbook)

    def test_update_task_remote_failure_is_not_not_found(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER)]
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets/2024-01/range(address='A:A')/usedRange(valuesOnly=true)")

        with self.assertRaises(RemoteAPIError) as ctx:
            self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', 'u1', '1', 'x', '2024-01-01', '1'))
        self.assertNotIsInstance(ctx.exception, TaskNotFoundError)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_delete_task_shifts_rows_up(self, mock_get_config):
        self.workbook['2024-01'] = [
            list(HEADER),
            ['u1', 'T-1', 'one', '2024-01-01', '1'],
            ['u2', 'T-2', 'two', '2024-01-02', '2'],
            ['u3', 'T-3', 'three', '2024-01-03', '3'],
        ]

        result = self.provider.delete_task(DeleteTaskRequest(ITEM_ID, '2024-01', 'u2'))

        self.assertEqual(result, {'success': True})
        self.assertEqual([row[0] for row in self.workbook['2024-01']], ['UID', 'u1', 'u3'])
        self.assertEqual(self.client.calls[-1],
                         ('POST', f"{ITEM_PATH}/worksheets/2024-01/range(address='3:3')/delete", {'shift': 'Up'}))

    def test_delete_task_not_found(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', 'T-1', 'one', '2024-01-01', '1']]

        with self.assertRaises(TaskNotFoundError):
            self.provider.delete_task(DeleteTaskRequest(ITEM_ID, '2024-01', 'nope'))
        self.assertEqual(len(self.workbook['2024-01']), 2)

    def test_update_and_delete_when_used_range_starts_below_row_one(self, mock_get_config):
        """Row numbers come from the used range's own position, not from row 1."""
        self.workbook['2024-01'] = [[], ['u1', 'T-1', 'one', '2024-01-01', '1'], ['u2', 'T-2', 'two', '2024-01-02', '2']]

        self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', 'u1', 'T-1', 'edited', '2024-01-01', '5'))
        self.assertEqual(self.workbook['2024-01'][1], ['u1', 'T-1', 'edited', '2024-01-01', '5'])

        self.provider.delete_task(DeleteTaskRequest(ITEM_ID, '2024-01', 'u2'))
        self.assertEqual(self.client.calls[-1][1], f"{ITEM_PATH}/worksheets/2024-01/range(address='3:3')/delete")
        self.assertEqual([row[0] if row else '' for row in self.workbook['2024-01']], ['', 'u1'])

    def test_first_row_from_address_when_row_index_missing(self, mock_get_config):
        self.assertEqual(excel.ExcelProvider._first_row({'address': "'2024-01'!A3:E9"}), 3)
        self.assertEqual(excel.ExcelProvider._first_row({'address': 'Sheet12!$A$2:$E$4'}), 2)
        self.assertEqual(excel.ExcelProvider._first_row({'rowIndex': 4, 'address': 'Sheet1!A1'}), 5)
        self.assertEqual(excel.ExcelProvider._first_row({}), 1)

    # --- get one month ---

    def test_get_tasks_reads_one_worksheet(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', 'T-1', 'one', 45306, 1.5]]
        self.workbook['2024-02'] = [list(HEADER), ['u2', 'T-2', 'two', '2024-02-01', '2']]

        result = self.provider.get_tasks(ITEM_ID, '2024-01')

        self.assertEqual(result, {'tasks': [
            {'uid': 'u1', 'number': 'T-1', 'description': 'one', 'date': '2024-01-15', 'time': '1.5'},
        ]})

    def test_get_tasks_provisions_missing_worksheet(self, mock_get_config):
        result = self.provider.get_tasks(ITEM_ID, '2024-05')

        self.assertEqual(result, {'tasks': []})
        self.assertEqual(self.workbook['2024-05'], [HEADER])

    def test_get_tasks_keeps_task_on_row_two_without_header(self, mock_get_config):
        self.workbook['2024-01'] = [[], ['u1', 'T-1', 'one', '2024-01-01', '1']]

        result = self.provider.get_tasks(ITEM_ID, '2024-01')

        self.assertEqual([task['uid'] for task in result['tasks']], ['u1'])

    def test_get_tasks_read_failure_propagates(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER)]
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets/2024-01/usedRange(valuesOnly=true)")

        with self.assertRaises(GraphAPIError):
            self.provider.get_tasks(ITEM_ID, '2024-01')

    def test_get_tasks_rejects_google_id(self, mock_get_config):
        with self.assertRaises(InvalidSheetIdError):
            self.provider.get_tasks(GOOGLE_ID, '2024-01')

    # --- get all ---

    def test_get_all_tasks_normalizes_serials(self, mock_get_config):
        self.workbook['2025-08'] = [list(HEADER), ['u1', 7, 'Serial row', 45895, 2.5]]
        self.workbook['2024-01'] = [list(HEADER), ['u2', 'T-2', 'Text row', '2024-01-16', '3.0']]

        result = self.provider.get_all_tasks(ITEM_ID)

        self.assertEqual(result['tasks'], [
            {'uid': 'u1', 'number': '7', 'description': 'Serial row', 'date': '2025-08-26', 'time': '2.5'},
            {'uid': 'u2', 'number': 'T-2', 'description': 'Text row', 'date': '2024-01-16', 'time': '3.0'},
        ])

    def test_get_all_tasks_skips_failing_worksheet(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER), ['u1', 'T-1', 'one', '2024-01-01', '1']]
        self.workbook['2024-02'] = [list(HEADER), ['u2', 'T-2', 'two', '2024-02-01', '2']]
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets/2024-01/usedRange(valuesOnly=true)")

        result = self.provider.get_all_tasks(ITEM_ID)

        self.assertEqual([task['uid'] for task in result['tasks']], ['u2'])

    def test_get_all_tasks_header_only_and_blank(self, mock_get_config):
        self.workbook['2024-01'] = [list(HEADER)]
        self.workbook['2024-02'] = []

        self.assertEqual(self.provider.get_all_tasks(ITEM_ID), {'tasks': []})

    def test_get_all_tasks_rejects_google_id(self, mock_get_config):
        with self.assertRaises(InvalidSheetIdError) as ctx:
            self.provider.get_all_tasks(GOOGLE_ID)
        self.assertIn('Google Sheets ID', str(ctx.exception))

    def test_get_all_tasks_enumeration_failure_propagates(self, mock_get_config):
        self.client.failing_paths.add(f"{ITEM_PATH}/worksheets")

        with self.assertRaises(GraphAPIError):
            self.provider.get_all_tasks(ITEM_ID)

    def test_task_lifecycle_scenario(self, mock_get_config):
        added = self.provider.add_task(_add_request())
        uid = added['uid']

        tasks = self.provider.get_all_tasks(ITEM_ID)['tasks']
        self.assertEqual(tasks, [{'uid': uid, 'number': 'T-001', 'description': 'Draft release notes',
                                  'date': '2024-01-15', 'time': '2.5'}])

        self.provider.update_task(UpdateTaskRequest(ITEM_ID, '2024-01', uid, 'T-001', 'Draft release notes', '2024-01-15', '3.0'))
        tasks = self.provider.get_all_tasks(ITEM_ID)['tasks']
        self.assertEqual([(t['uid'], t['time'], t['number']) for t in tasks], [(uid, '3.0', 'T-001')])

        self.provider.delete_task(DeleteTaskRequest(ITEM_ID, '2024-01', uid))
        self.assertEqual(self.provider.get_all_tasks(ITEM_ID), {'tasks': []})


if __name__ == '__main__':
    unittest.main()
