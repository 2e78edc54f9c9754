import pytest

from models.entities.documents.payments import PaymentRecordData
from models.operations.errors import InvalidRequestError
from models.operations.wallet import WalletService, payout_key

VENDOR_ID = "vendor-cape-hire"


@pytest.fixture
def wallet(store, clock):
    return WalletService(store, clock=clock)


@pytest.fixture
def add_payment(wallet):
    async def _add(key, amount, status="COMPLETED", merchant_paid=False, merchant_id=VENDOR_ID):
        commission = round(amount * 0.08, 2)
        return await wallet.payments.create(
            PaymentRecordData(
                order_id=f"order-{key}",
                amount=amount,
                commission_amount=commission,
                merchant_amount=round(amount - commission, 2),
                status=status,
                payer_id="user-thandi",
                merchant_id=merchant_id,
                merchant_paid=merchant_paid,
            ),
            key=key,
        )

    return _add


async def test_summary_segments_balances(wallet, add_payment):
    await add_payment("p1", 216.00)                                     # available 198.72
    await add_payment("p2", 100.00, status="PAID", merchant_paid=True)  # paid out 92.00
    await add_payment("p3", 50.00, status="PENDING")                    # pending 46.00
    await add_payment("p4", 999.00, merchant_id="someone-else")

    summary = await wallet.summary(VENDOR_ID)

    assert summary.available_balance == 198.72
    assert summary.paid_out_total == 92.00
    assert summary.pending_balance == 46.00
    assert summary.completed_sales_total == 290.72
    assert summary.credit_balance == 0.0
    assert summary.total_balance == 336.72
    assert summary.totals.count == 3
    assert summary.totals.total_amount == 366.00
    assert summary.totals.total_commission == 29.28
    assert summary.totals.total_merchant_amount == 336.72
    assert {p.id for p in summary.payments} == {"p1", "p2", "p3"}


async def test_summary_for_merchant_without_payments(wallet):
    summary = await wallet.summary("new-vendor")
    assert summary.available_balance == 0.0
    assert summary.totals.count == 0
    assert summary.payments == []


async def test_payout_flags_all_eligible_records(wallet, add_payment, clock, store):
    await add_payment("p1", 216.00)
    await add_payment("p2", 100.00)
    await add_payment("p3", 50.00, status="PENDING")

    result = await wallet.payout(VENDOR_ID)

    assert sorted(result.payment_ids) == ["p1", "p2"]
    assert result.total_amount == 290.72
    for key in ("p1", "p2"):
        record = await wallet.payments.get(key)
        assert record.data.merchant_paid is True
        assert record.data.status == "PAID"
        assert record.data.merchant_payout_date == clock.now
        transaction = await wallet.transactions.get(payout_key(key))
        assert transaction.data.type == "DEBIT_PAYOUT"
        assert transaction.data.amount == record.data.merchant_amount
    assert (await wallet.payments.get("p3")).data.merchant_paid is False

    summary = await wallet.summary(VENDOR_ID)
    assert summary.available_balance == 0.0
    assert summary.paid_out_total == 290.72


async def test_payout_narrowed_to_selected_payments(wallet, add_payment):
    await add_payment("p1", 216.00)
    await add_payment("p2", 100.00)

    result = await wallet.payout(VENDOR_ID, payment_ids=["p2", "not-mine"])
    assert result.payment_ids == ["p2"]
    assert (await wallet.payments.get("p1")).data.merchant_paid is False


async def test_payout_with_nothing_eligible(wallet, add_payment):
    await add_payment("p1", 216.00, status="PAID", merchant_paid=True)
    await add_payment("p2", 50.00, status="PENDING")

    with pytest.raises(InvalidRequestError) as exc:
        await wallet.payout(VENDOR_ID)
    assert exc.value.code == "nothing_to_pay_out"


async def test_second_payout_finds_nothing(wallet, add_payment, store):
    await add_payment("p1", 216.00)
    await wallet.payout(VENDOR_ID)
    with pytest.raises(InvalidRequestError):
        await wallet.payout(VENDOR_ID)
    assert store.count("wallet_transactions") == 1


async def test_failed_ledger_write_leaves_payment_eligible(wallet, add_payment, monkeypatch):
    from clients.store import StoreError

    await add_payment("p1", 216.00)
    create = wallet.transactions.create

    async def unavailable(*args, **kwargs):
        raise StoreError("cluster unavailable")

    monkeypatch.setattr(wallet.transactions, "create", unavailable)
    with pytest.raises(StoreError):
        await wallet.payout(VENDOR_ID)
    assert (await wallet.payments.get("p1")).data.merchant_paid is False

    monkeypatch.setattr(wallet.transactions, "create", create)
    result = await wallet.payout(VENDOR_ID)
    assert result.payment_ids == ["p1"]
    assert result.transaction_ids == [payout_key("p1")]
    assert (await wallet.transactions.get(payout_key("p1"))).data.amount == 198.72


async def test_retried_payout_reuses_existing_ledger_entry(wallet, add_payment, store):
    record = await add_payment("p1", 216.00)
    await wallet._record_payout(VENDOR_ID, record)

    result = await wallet.payout(VENDOR_ID)
    assert result.transaction_ids == [payout_key("p1")]
    assert store.count("wallet_transactions") == 1


async def test_transactions_listed_newest_first(wallet, add_payment, clock):
    for key in ("p1", "p2", "p3"):
        await add_payment(key, 100.00)
        await wallet.payout(VENDOR_ID, payment_ids=[key])
        clock.advance(minutes=5)

    transactions = await wallet.list_transactions(VENDOR_ID)
    assert [t.data.related_payment_id for t in transactions] == ["p3", "p2", "p1"]
    assert all(t.data.type == "DEBIT_PAYOUT" for t in transactions)

    assert len(await wallet.list_transactions(VENDOR_ID, limit=2)) == 2
    assert len(await wallet.list_transactions(VENDOR_ID, limit=0)) == 1
    assert await wallet.list_transactions("someone-else") == []
