import unittest
from datetime import timedelta

from planner.sessions import WorkspaceRegistry


class FakeWorkspace:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


class BrokenWorkspace(FakeWorkspace):
    def close(self):
        raise RuntimeError("already gone")


class WorkspaceRegistryTests(unittest.TestCase):
    def test_create_and_resolve_workspace(self):
        registry = WorkspaceRegistry(FakeWorkspace)

        token, workspace = registry.create()

        self.assertIs(registry.resolve(token), workspace)
        self.assertIsNone(registry.resolve("unknown"))
        self.assertEqual(len(registry), 1)
        self.assertEqual(registry.cookie_max_age, 8 * 3600)

    def test_each_browser_gets_its_own_workspace(self):
        registry = WorkspaceRegistry(FakeWorkspace)

        first_token, first = registry.create()
        second_token, second = registry.create()

        self.assertNotEqual(first_token, second_token)
        self.assertIsNot(first, second)

    def test_expired_workspace_is_closed_on_resolve(self):
        registry = WorkspaceRegistry(FakeWorkspace, ttl=timedelta(seconds=-1))
        token, workspace = registry.create()

        self.assertIsNone(registry.resolve(token))
        self.assertEqual(workspace.closed, 1)
        self.assertEqual(len(registry), 0)

    def test_purge_expired_closes_stale_workspaces(self):
        registry = WorkspaceRegistry(FakeWorkspace, ttl=timedelta(seconds=-1))
        _, first = registry.create()
        _, second = registry.create()

        self.assertEqual(registry.purge_expired(), 2)
        self.assertEqual((first.closed, second.closed), (1, 1))

    def test_destroy_and_close_all(self):
        registry = WorkspaceRegistry(FakeWorkspace)
        token, destroyed = registry.create()
        _, remaining = registry.create()

        registry.destroy(token)
        registry.destroy(token)
        registry.close_all()

        self.assertEqual(destroyed.closed, 1)
        self.assertEqual(remaining.closed, 1)
        self.assertEqual(len(registry), 0)

    def test_close_errors_are_logged_not_raised(self):
        registry = WorkspaceRegistry(BrokenWorkspace)
        registry.create()

        with self.assertLogs("gpr.sessions", level="ERROR") as captured:
            registry.close_all()

        self.assertIn("Failed to close workspace", captured.output[0])

    def test_new_workspaces_start_on_short_ttl(self):
        registry = WorkspaceRegistry(FakeWorkspace)

        self.assertEqual(registry.anonymous_ttl, timedelta(minutes=15))
        self.assertEqual(WorkspaceRegistry(FakeWorkspace, ttl=timedelta(minutes=5)).anonymous_ttl,
                         timedelta(minutes=5))

    def test_anonymous_workspace_is_purged_unless_promoted(self):
        registry = WorkspaceRegistry(FakeWorkspace, anonymous_ttl=timedelta(seconds=-1))
        anonymous_token, anonymous = registry.create()
        signed_in_token, signed_in = registry.create()

        registry.promote(signed_in_token)
        registry.promote("unknown")

        self.assertEqual(registry.purge_expired(), 1)
        self.assertEqual(anonymous.closed, 1)
        self.assertIsNone(registry.resolve(anonymous_token))
        self.assertIs(registry.resolve(signed_in_token), signed_in)
        self.assertEqual(signed_in.closed, 0)


if __name__ == "__main__":
    unittest.main()
