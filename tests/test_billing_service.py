import uuid

import pytest
from pydantic import ValidationError

from academy.models import User
from academy.schemas.checkout import BillingAddress, PrincipalAddress, TaxIdentifier
from academy.services.billing_service import BillingService, address_from_tax_identifier

GSTIN = "27AAPFU0939F1ZV"


def test_gstin_is_upper_cased_and_validated():
    assert TaxIdentifier(gstin=" 27aapfu0939f1zv ").gstin == GSTIN

    with pytest.raises(ValidationError):
        TaxIdentifier(gstin="NOT-A-GSTIN")
    with pytest.raises(ValidationError):
        TaxIdentifier(gstin=GSTIN, unexpected="field")


def test_address_from_principal_place_of_business():
    identifier = TaxIdentifier(
        gstin=GSTIN,
        legal_name="Futuretek LLP",
        principal_address=PrincipalAddress(
            building_number="12",
            floor="2nd Floor",
            building_name="Sai Plaza",
            street="MG Road",
            district="Pune",
            state="Maharashtra",
            pin_code="411001",
        ),
    )

    address = address_from_tax_identifier(identifier)

    assert address.address_line1 == "2nd Floor, 12, Sai Plaza, MG Road"
    assert address.city == "Pune"
    assert address.pin_code == "411001"
    assert address_from_tax_identifier(TaxIdentifier(gstin=GSTIN)) is None


def test_incomplete_principal_address_is_not_derived():
    no_district = PrincipalAddress(street="MG Road", state="Maharashtra", pin_code="411001")
    short_pin = PrincipalAddress(street="MG Road", district="Pune", state="Maharashtra", pin_code="12")

    assert address_from_tax_identifier(TaxIdentifier(gstin=GSTIN, principal_address=no_district)) is None
    assert address_from_tax_identifier(TaxIdentifier(gstin=GSTIN, principal_address=short_pin)) is None


async def test_save_and_read_billing_details(db, seed):
    service = BillingService(db)
    address = BillingAddress(address_line1="14 Park Street", city="Kolkata", state="West Bengal", pin_code="700016")

    assert await service.save_billing_details(seed.student.id, address, TaxIdentifier(gstin=GSTIN))

    user = await db.get(User, seed.student.id)
    info = await service.get_billing_info(user)
    assert info.gst_number == GSTIN
    assert info.is_gst_verified
    assert info.address.city == "Kolkata"

    # Second save updates the default address in place
    moved = BillingAddress(address_line1="1 Lake Road", city="Kolkata", state="West Bengal", pin_code="700029")
    assert await service.save_billing_details(seed.student.id, billing_address=moved)
    info = await service.get_billing_info(user)
    assert info.address.address_line1 == "1 Lake Road"


async def test_save_billing_details_noop_cases(db, seed):
    service = BillingService(db)

    assert not await service.save_billing_details(seed.student.id)
    assert not await service.save_billing_details(
        uuid.uuid4(), BillingAddress(address_line1="x", city="y", state="z", pin_code="123")
    )


async def test_unusable_gst_address_still_saves_gstin(db, seed):
    identifier = TaxIdentifier(
        gstin=GSTIN,
        principal_address=PrincipalAddress(street="MG Road", district="Pune", state="Maharashtra", pin_code="12"),
    )

    assert await BillingService(db).save_billing_details(seed.student.id, tax_identifier=identifier)

    info = await BillingService(db).get_billing_info(await db.get(User, seed.student.id))
    assert info.gst_number == GSTIN
    assert info.address is None
