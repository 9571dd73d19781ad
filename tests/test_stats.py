from quotadeck.stats import compute_account_stats, is_account_active


def account(limits, status="ok", enabled=True, email="a@example.com"):
    return {"email": email, "enabled": enabled, "status": status, "limits": limits}


class TestIsAccountActive:
    def test_core_model_with_headroom(self):
        assert is_account_active(account({"claude-opus-4-5": {"remainingFraction": 0.5}}))

    def test_exhausted_core_model(self):
        assert not is_account_active(
            account({"claude-opus-4-5": {"remainingFraction": 0.01}})
        )

    def test_exhausted_core_beats_flush_obscure_model(self):
        limits = {
            "claude-opus-4-5": {"remainingFraction": 0.0},
            "gpt-oss-120b": {"remainingFraction": 1.0},
        }
        assert not is_account_active(account(limits))

    def test_no_core_models_falls_back_to_any_limit(self):
        assert is_account_active(account({"gpt-oss-120b": {"remainingFraction": 0.9}}))
        assert not is_account_active(
            account({"gpt-oss-120b": {"remainingFraction": 0.05}})
        )

    def test_core_match_is_case_insensitive(self):
        assert is_account_active(account({"Gemini-3-PRO": {"remainingFraction": 0.6}}))

    def test_null_fraction(self):
        assert not is_account_active(
            account({"gemini-3-flash": {"remainingFraction": None}})
        )

    def test_status_not_ok(self):
        assert not is_account_active(
            account({"claude-opus-4-5": {"remainingFraction": 1.0}}, status="invalid")
        )

    def test_no_limits(self):
        assert not is_account_active(account({}))


class TestComputeAccountStats:
    def test_scenario(self):
        accounts = [
            account({"opus": {"remainingFraction": 0.5}}, email="one@example.com"),
            account({"opus": {"remainingFraction": 0.01}}, email="two@example.com"),
            account(
                {"opus": {"remainingFraction": 1.0}},
                enabled=False,
                email="three@example.com",
            ),
        ]
        assert compute_account_stats(accounts) == {"total": 2, "active": 1, "limited": 1}

    def test_enabled_defaults_to_true(self):
        accounts = [{"email": "a@example.com", "status": "ok", "limits": {}}]
        assert compute_account_stats(accounts)["total"] == 1

    def test_empty(self):
        assert compute_account_stats([]) == {"total": 0, "active": 0, "limited": 0}
