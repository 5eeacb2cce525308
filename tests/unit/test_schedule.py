"""
Level Schedule Tests
"""

import pytest


class TestTrainingSchedule:

    def test_client_mode_fits_default_chain(self, params):
        from fhe_logreg.fhe import training_schedule

        schedule = training_schedule("client")
        assert schedule.required_depth == 5
        schedule.validate(params.max_level)

    def test_homomorphic_mode_needs_one_more_level(self, params):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import training_schedule

        schedule = training_schedule("homomorphic")
        assert schedule.required_depth == 6
        with pytest.raises(SetupError, match="Add at least 1"):
            schedule.validate(params.max_level)
        schedule.validate(6)

    def test_unknown_forward_mode(self):
        from fhe_logreg.errors import SetupError
        from fhe_logreg.fhe import training_schedule

        with pytest.raises(SetupError, match="forward_mode"):
            training_schedule("server")

    def test_expected_levels_client(self):
        from fhe_logreg.fhe import training_schedule

        schedule = training_schedule("client")
        entry = schedule.entry_level(5)
        assert entry == 5
        assert schedule.expected_level("x_squared", entry) == 4
        assert schedule.expected_level("sigmoid", entry) == 2
        assert schedule.expected_level("derivative_sum", entry) == 1
        assert schedule.expected_level("updated_weights", entry) == 0

    def test_fresh_steps_follow_their_own_input(self):
        from fhe_logreg.fhe import training_schedule

        schedule = training_schedule("homomorphic")
        entry = schedule.entry_level(6)
        assert entry == 5
        assert schedule.expected_level("scaled_learning_rate", entry, fresh_level=6) == 5
        with pytest.raises(ValueError, match="fresh input"):
            schedule.expected_level("scaled_learning_rate", entry)

    def test_rows(self):
        from fhe_logreg.fhe import training_schedule

        rows = {row["step"]: row for row in training_schedule("client").rows(5)}
        assert rows["linear_product"]["level"] == 5
        assert rows["c5_x5"]["level"] == 2
        assert rows["updated_weights"]["level"] == 0


class TestCheck:

    def test_off_schedule_value_is_a_violation(self, backend):
        from fhe_logreg.errors import AlignmentInvariantViolation
        from fhe_logreg.fhe import sigmoid_schedule

        schedule = sigmoid_schedule()
        ct = backend.encrypt_values(1.0, level=3)
        assert schedule.check("x_squared", ct, entry_level=4) is ct
        with pytest.raises(AlignmentInvariantViolation, match="planned 4"):
            schedule.check("x_squared", ct, entry_level=5)

    def test_duplicate_step_names(self):
        from fhe_logreg.fhe import LevelSchedule, ScheduleStep

        with pytest.raises(ValueError, match="unique"):
            LevelSchedule(steps=(ScheduleStep("a", 1), ScheduleStep("a", 2)))
