# recognition/tests/test_state.py
from django.test import SimpleTestCase

from recognition.state import InvalidTransition, Screen, ScreenFlow, can_transition

from .helpers import FakeSession


class TransitionTableTest(SimpleTestCase):
    def test_home_reaches_capture_and_privacy(self):
        for target in (Screen.CAMERA, Screen.UPLOAD, Screen.PRIVACY):
            self.assertTrue(can_transition(Screen.HOME, target))
        self.assertFalse(can_transition(Screen.HOME, Screen.PROCESSING))
        self.assertFalse(can_transition(Screen.HOME, Screen.RESULTS))

    def test_capture_leads_to_processing_then_results(self):
        self.assertTrue(can_transition(Screen.CAMERA, Screen.PROCESSING))
        self.assertTrue(can_transition(Screen.UPLOAD, Screen.PROCESSING))
        self.assertTrue(can_transition(Screen.PROCESSING, Screen.RESULTS))
        self.assertFalse(can_transition(Screen.CAMERA, Screen.RESULTS))
        self.assertFalse(can_transition(Screen.RESULTS, Screen.CAMERA))

    def test_back_home_always_allowed(self):
        for screen in Screen:
            self.assertTrue(can_transition(screen, Screen.HOME))
            self.assertTrue(can_transition(screen, screen))


class ScreenFlowTest(SimpleTestCase):
    def test_defaults_to_home(self):
        self.assertEqual(ScreenFlow(FakeSession()).current, Screen.HOME)
        self.assertEqual(ScreenFlow(FakeSession(screen="bogus")).current, Screen.HOME)

    def test_walk_through_flow(self):
        session = FakeSession()
        flow = ScreenFlow(session)
        for screen in (Screen.UPLOAD, Screen.PROCESSING, Screen.RESULTS, Screen.HOME):
            flow.go(screen)
            self.assertEqual(session["screen"], screen.value)
        self.assertTrue(session.modified)

    def test_illegal_transition_raises(self):
        flow = ScreenFlow(FakeSession(screen="home"))
        with self.assertRaises(InvalidTransition) as ctx:
            flow.go(Screen.RESULTS)
        self.assertEqual(ctx.exception.current, Screen.HOME)
        self.assertEqual(flow.current, Screen.HOME)
