import pytest
from decimal import Decimal

from treasury_relay.models.balance import Balance
from treasury_relay.models.payment_link import PaymentLink
from treasury_relay.services import ledger_service, payment_recorder
from treasury_relay.utils.constants import PaymentStatus
from treasury_relay.utils.exceptions import (
    AliasTakenError,
    InsufficientBalanceError,
    PaymentLinkNotFoundError,
    UsernameTakenError,
    ValidationError,
)
from tests.conftest import ALICE_WALLET, BOB_WALLET, PAYER, FakeChainClient


# get_or_create_user

def test_register_new_user_creates_zero_balance(db_session):
    user = ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alice")

    assert user.id is not None
    assert user.username == "alice"
    balance = db_session.query(Balance).filter(Balance.username == "alice").one()
    assert balance.wallet_address == ALICE_WALLET
    assert balance.available_balance == Decimal("0")


def test_register_is_idempotent(db_session):
    first = ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alice")
    second = ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alice")

    assert first.id == second.id
    assert db_session.query(Balance).count() == 1


def test_register_normalizes_username_and_wallet(db_session):
    user = ledger_service.get_or_create_user(db_session, ALICE_WALLET.upper().replace("0X", "0x"), "  Alice_01 ")

    assert user.username == "alice01"
    assert user.wallet_address == ALICE_WALLET


def test_register_without_username_uses_placeholder_balance(db_session):
    user = ledger_service.get_or_create_user(db_session, BOB_WALLET)

    assert user.username is None
    balance = db_session.query(Balance).filter(Balance.wallet_address == BOB_WALLET).one()
    assert balance.username == BOB_WALLET[-8:]


def test_register_rejects_username_of_other_wallet(db_session, alice):
    with pytest.raises(UsernameTakenError):
        ledger_service.get_or_create_user(db_session, BOB_WALLET, "alice")


def test_register_rejects_username_used_as_alias(db_session, alice):
    ledger_service.create_payment_link(db_session, ALICE_WALLET, "shop")

    with pytest.raises(UsernameTakenError):
        ledger_service.get_or_create_user(db_session, BOB_WALLET, "shop")


def test_register_rejects_empty_username(db_session):
    with pytest.raises(ValidationError):
        ledger_service.get_or_create_user(db_session, ALICE_WALLET, "!!!")


def test_rename_keeps_wallet_and_ledger_row(db_session, funded_alice):
    user = ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alicia")

    assert user.username == "alicia"
    assert user.wallet_address == ALICE_WALLET
    # the balance stays on the first ledger username
    assert ledger_service.get_balance(db_session, "alice").available_balance == Decimal("2.5")
    # and the new name routes payments to it
    recipient = ledger_service.resolve_alias(db_session, "alicia")
    assert recipient.username == "alice"


def test_rename_to_taken_username_fails(db_session, alice):
    ledger_service.get_or_create_user(db_session, BOB_WALLET, "bob")

    with pytest.raises(UsernameTakenError):
        ledger_service.get_or_create_user(db_session, BOB_WALLET, "alice")


def test_register_claims_implicit_balance(db_session):
    """Credits sent to an unregistered name belong to the wallet that registers it."""
    payment_recorder.record_payment(db_session, PAYER, "carol", Decimal("3"), "0xtx-carol")

    ledger_service.get_or_create_user(db_session, BOB_WALLET, "carol")

    balance = db_session.query(Balance).filter(Balance.username == "carol").one()
    assert balance.wallet_address == BOB_WALLET
    assert balance.available_balance == Decimal("3")
    assert db_session.query(Balance).count() == 1


def test_register_reuses_balance_credited_by_address(db_session):
    payment_recorder.record_payment(db_session, PAYER, BOB_WALLET, Decimal("1"), "0xtx-addr")

    ledger_service.get_or_create_user(db_session, BOB_WALLET, "bob")

    assert db_session.query(Balance).count() == 1
    recipient = ledger_service.resolve_alias(db_session, "bob")
    assert recipient.username == BOB_WALLET[-8:]


# balances

def test_get_balance_defaults_to_zero(db_session):
    balance = ledger_service.get_balance(db_session, "nobody")

    assert balance.available_balance == Decimal("0")
    assert balance.exists is False
    assert ledger_service.find_balance(db_session, "nobody") is None


def test_adjust_balance_creates_row_with_fallback_wallet(db_session):
    balance = ledger_service.adjust_balance(db_session, "dave", Decimal("4"), "0xdave")
    db_session.commit()

    assert balance.available_balance == Decimal("4")
    assert balance.wallet_address == "0xdave"


def test_adjust_balance_insufficient_leaves_balance(db_session, funded_alice):
    with pytest.raises(InsufficientBalanceError):
        ledger_service.adjust_balance(db_session, "alice", Decimal("-3"))
    db_session.rollback()

    assert ledger_service.get_balance(db_session, "alice").available_balance == Decimal("2.5")


# aliases

def test_is_alias_available(db_session, alice):
    ledger_service.create_payment_link(db_session, ALICE_WALLET, "shop")

    assert ledger_service.is_alias_available(db_session, "newname") is True
    assert ledger_service.is_alias_available(db_session, "shop") is False
    assert ledger_service.is_alias_available(db_session, "SHOP!") is False
    assert ledger_service.is_alias_available(db_session, "alice") is False
    assert ledger_service.is_alias_available(db_session, "") is False
    assert ledger_service.is_alias_available(db_session, "***") is False


def test_create_payment_link_points_at_ledger_username(db_session, alice):
    link = ledger_service.create_payment_link(db_session, ALICE_WALLET, "Coffee Shop")

    assert link.alias == "coffeeshop"
    assert link.username == "alice"
    assert link.wallet_address == ALICE_WALLET


def test_create_payment_link_taken(db_session, alice):
    ledger_service.create_payment_link(db_session, ALICE_WALLET, "shop")

    with pytest.raises(AliasTakenError):
        ledger_service.create_payment_link(db_session, BOB_WALLET, "shop")


def test_list_and_delete_payment_links(db_session, alice):
    first = ledger_service.create_payment_link(db_session, ALICE_WALLET, "one")
    ledger_service.create_payment_link(db_session, ALICE_WALLET, "two")

    links = ledger_service.list_payment_links(db_session, ALICE_WALLET)
    assert {l.alias for l in links} == {"one", "two"}

    with pytest.raises(PaymentLinkNotFoundError):
        ledger_service.delete_payment_link(db_session, first.id, BOB_WALLET)

    ledger_service.delete_payment_link(db_session, first.id, ALICE_WALLET)
    assert ledger_service.get_payment_link(db_session, "one") is None
    assert db_session.query(PaymentLink).count() == 1


# history

def test_list_payments_marks_sent_entries(db_session, funded_alice):
    ledger_service.get_or_create_user(db_session, BOB_WALLET, "bob")
    payment_recorder.record_payment(db_session, ALICE_WALLET, "bob", Decimal("1"), "0xtx-to-bob")

    history = ledger_service.list_payments(db_session, "alice")

    by_hash = {p.tx_hash: p for p in history}
    assert by_hash["0xtx1"].is_sent is False
    assert by_hash["0xtx1"].amount == Decimal("2.5")
    assert by_hash["0xtx-to-bob"].is_sent is True
    assert len(history) == 2


def test_list_payments_unknown_user_is_empty(db_session):
    assert ledger_service.list_payments(db_session, "ghost") == []


# reconciliation

def test_verify_ledger_consistent(db_session, funded_alice):
    payment_recorder.record_payment(db_session, PAYER, "bob", Decimal("4"), "0xtx-bob")

    report = ledger_service.verify_ledger(db_session)

    assert report.consistent is True
    assert report.total_balances == Decimal("6.5")
    assert report.total_payments == Decimal("6.5")


def test_verify_ledger_detects_tampering(db_session, funded_alice):
    balance = db_session.query(Balance).filter(Balance.username == "alice").one()
    balance.available_balance = Decimal("100")
    db_session.commit()

    report = ledger_service.verify_ledger(db_session)

    assert report.consistent is False
    assert report.mismatches[0].username == "alice"
    assert report.mismatches[0].ledger_total == Decimal("2.5")


def test_verify_ledger_detects_entries_without_balance(db_session):
    ledger_service.append_payment(db_session, PAYER, "orphan", Decimal("1"), "0xorphan", PaymentStatus.COMPLETED)
    db_session.commit()

    report = ledger_service.verify_ledger(db_session)

    assert report.consistent is False
    assert report.mismatches[0].username == "orphan"


def test_check_solvency(db_session, funded_alice):
    report = ledger_service.check_solvency(db_session, FakeChainClient(treasury_balance="2"))

    assert report.solvent is False
    assert report.shortfall == Decimal("0.5")

    report = ledger_service.check_solvency(db_session, FakeChainClient(treasury_balance="10"))
    assert report.solvent is True
    assert report.shortfall == Decimal("0")


# implicit users and placeholder collisions

def test_implicit_username_is_not_available_as_alias(db_session, alice):
    payment_recorder.record_payment(db_session, PAYER, "carol", Decimal("5"), "0xtx-carol")

    assert ledger_service.is_alias_available(db_session, "carol") is False
    with pytest.raises(AliasTakenError):
        ledger_service.create_payment_link(db_session, ALICE_WALLET, "carol")

    # later credits keep landing on carol's row
    payment_recorder.record_payment(db_session, PAYER, "carol", Decimal("1"), "0xtx-carol2")
    assert ledger_service.get_balance(db_session, "carol").available_balance == Decimal("6")
    assert ledger_service.get_balance(db_session, "alice").available_balance == Decimal("0")


def test_rename_onto_implicit_username_fails(db_session, alice):
    payment_recorder.record_payment(db_session, PAYER, "carol", Decimal("5"), "0xtx-carol")

    with pytest.raises(UsernameTakenError):
        ledger_service.get_or_create_user(db_session, ALICE_WALLET, "carol")

    assert ledger_service.get_user_by_wallet(db_session, ALICE_WALLET).username == "alice"
    assert ledger_service.resolve_alias(db_session, "carol") is None


def test_addresses_sharing_a_suffix_keep_separate_rows(db_session):
    first = "0x" + "1" * 32 + "deadbeef"
    second = "0x" + "2" * 32 + "deadbeef"

    payment_recorder.record_payment(db_session, PAYER, first, Decimal("3"), "0xtx-w1")
    payment_recorder.record_payment(db_session, PAYER, second, Decimal("4"), "0xtx-w2")

    first_row = db_session.query(Balance).filter(Balance.wallet_address == first).one()
    second_row = db_session.query(Balance).filter(Balance.wallet_address == second).one()
    assert first_row.username == "deadbeef"
    assert first_row.available_balance == Decimal("3")
    assert second_row.username == second
    assert second_row.available_balance == Decimal("4")
    assert ledger_service.verify_ledger(db_session).consistent is True


def test_registration_without_username_avoids_taken_placeholder(db_session):
    first = "0x" + "1" * 32 + "deadbeef"
    second = "0x" + "2" * 32 + "deadbeef"

    ledger_service.get_or_create_user(db_session, first)
    ledger_service.get_or_create_user(db_session, second)

    usernames = {b.wallet_address: b.username for b in db_session.query(Balance).all()}
    assert usernames == {first: "deadbeef", second: second}


def test_get_balance_follows_rename(db_session, funded_alice):
    ledger_service.get_or_create_user(db_session, ALICE_WALLET, "alicia")

    renamed = ledger_service.get_balance(db_session, "alicia")
    assert renamed.available_balance == Decimal("2.5")
    assert renamed.username == "alice"
    assert ledger_service.get_balance(db_session, "alice").available_balance == Decimal("2.5")


def test_get_balance_by_alias_and_address(db_session, funded_alice):
    ledger_service.create_payment_link(db_session, ALICE_WALLET, "tips")

    assert ledger_service.get_balance(db_session, "tips").available_balance == Decimal("2.5")
    assert ledger_service.get_balance(db_session, ALICE_WALLET).available_balance == Decimal("2.5")
