from chainsync.core.session import WalletSession


def test_only_newest_generation_applies(session):
    first = session.begin_reconciliation()
    second = session.begin_reconciliation()

    assert session.apply_observed_chain(first, 137) is False
    assert session.observed_chain_id is None
    assert session.apply_observed_chain(second, 1) is True
    assert session.observed_chain_id == 1
    assert session.latest_generation == second


def test_generations_increase(session: WalletSession):
    assert [session.begin_reconciliation() for _ in range(3)] == [1, 2, 3]
