import asyncio
from datetime import date

from academy.models.invoice_sequence import InvoiceSequence
from academy.models.payment import PaymentChannel
from academy.services.invoice_sequence_service import InvoiceSequenceService, format_invoice_number


def test_financial_year_boundaries():
    assert InvoiceSequence.get_financial_year(date(2024, 10, 1)) == "2425"
    assert InvoiceSequence.get_financial_year(date(2025, 2, 28)) == "2425"
    assert InvoiceSequence.get_financial_year(date(2025, 3, 31)) == "2425"
    assert InvoiceSequence.get_financial_year(date(2025, 4, 1)) == "2526"
    assert InvoiceSequence.get_financial_year(date(2099, 12, 1)) == "9900"


def test_format_invoice_number():
    assert format_invoice_number("FT", "2425", PaymentChannel.DOMESTIC, 7) == "FT2425G00007"
    assert format_invoice_number("FT", "2425", PaymentChannel.FOREX, 123456) == "FT2425F123456"


async def test_numbers_increase_per_channel(db):
    service = InvoiceSequenceService(db, prefix="FT")
    today = date(2024, 10, 15)

    first = await service.get_next_invoice_number(PaymentChannel.DOMESTIC, today)
    second = await service.get_next_invoice_number(PaymentChannel.DOMESTIC, today)
    forex = await service.get_next_invoice_number(PaymentChannel.FOREX, today)
    await db.commit()

    assert first == "FT2425G00001"
    assert second == "FT2425G00002"
    assert forex == "FT2425F00001"
    assert await service.get_current_number(PaymentChannel.DOMESTIC, "2425") == 2


async def test_new_financial_year_restarts_series(db):
    service = InvoiceSequenceService(db, prefix="FT")

    await service.get_next_invoice_number(PaymentChannel.DOMESTIC, date(2025, 3, 31))
    next_year = await service.get_next_invoice_number(PaymentChannel.DOMESTIC, date(2025, 4, 1))

    assert next_year == "FT2526G00001"


async def test_preview_does_not_issue(db):
    service = InvoiceSequenceService(db, prefix="FT")

    assert await service.preview_next_invoice_number(PaymentChannel.DOMESTIC, "2425") == "FT2425G00001"
    assert await service.preview_next_invoice_number(PaymentChannel.DOMESTIC, "2425") == "FT2425G00001"
    assert await service.get_current_number(PaymentChannel.DOMESTIC, "2425") == 0


async def test_concurrent_issuance_has_no_duplicates(session_factory):
    today = date(2024, 10, 15)

    async def issue():
        async with session_factory() as session:
            number = await InvoiceSequenceService(session, prefix="FT").get_next_invoice_number(
                PaymentChannel.DOMESTIC, today
            )
            await session.commit()
            return number

    numbers = await asyncio.gather(*(issue() for _ in range(8)))

    assert len(set(numbers)) == 8
    assert sorted(numbers) == [f"FT2425G{n:05d}" for n in range(1, 9)]
