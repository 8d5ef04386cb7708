import pytest
from feedgen.services.validation_service import ValidationService
from feedgen.utils.errors import ValidationError


@pytest.fixture
def service():
    return ValidationService()


def test_validate_generate_valid(service):
    request = service.validate_generate({
        "businessId": "b1",
        "name": "Main feed",
        "platform": "Facebook",
        "options": {"primaryDomain": "https://shop.com.br", "productType": "variant"},
    })
    assert request.business_id == "b1"
    assert request.platform == "facebook"
    assert request.file_key is None

    options = request.options.to_feed_options()
    assert options.primary_domain == "shop.com.br"
    assert options.product_type == "variant"
    assert options.model_fields_set == {"primary_domain", "product_type"}


def test_validate_generate_requires_domain(service):
    with pytest.raises(ValidationError) as exc:
        service.validate_generate({"businessId": "b1", "name": "Main", "platform": "facebook", "options": {}})
    assert exc.value.code == "INVALID_GENERATE_REQUEST"
    assert any(err["field"].startswith("options") for err in exc.value.errors)


@pytest.mark.parametrize("platform", ["google", "instagram", "tiktok"])
def test_validate_generate_rejects_platform(service, platform):
    with pytest.raises(ValidationError) as exc:
        service.validate_generate({
            "businessId": "b1",
            "name": "Main",
            "platform": platform,
            "options": {"primaryDomain": "shop.com"},
        })
    assert [err["field"] for err in exc.value.errors] == ["platform"]


def test_validate_generate_rejects_bad_values(service):
    with pytest.raises(ValidationError) as exc:
        service.validate_generate({
            "businessId": "",
            "name": "Main",
            "platform": "pinterest",
            "options": {"primaryDomain": "shop.com", "currencyCode": "reais", "productType": "bundle"},
        })
    fields = {err["field"] for err in exc.value.errors}
    assert fields == {"businessId", "options.currencyCode", "options.productType"}


def test_validate_update_optional_options(service):
    request = service.validate_update({"businessId": "b1", "fileKey": "b1_1.xml"})
    assert request.to_feed_options() is None

    request = service.validate_update({
        "businessId": "b1",
        "fileKey": "b1_1.xml",
        "options": {"currencyCode": "usd"},
    })
    options = request.to_feed_options()
    assert options.currency_code == "USD"
    assert options.model_fields_set == {"currency_code"}


def test_validate_update_requires_key(service):
    with pytest.raises(ValidationError) as exc:
        service.validate_update({"businessId": "b1"})
    assert exc.value.code == "INVALID_UPDATE_REQUEST"


def test_validate_exclude(service):
    request = service.validate_exclude({"business_id": "b1", "file_key": "b1_1.xml"})
    assert request.file_key == "b1_1.xml"
    with pytest.raises(ValidationError):
        service.validate_exclude({"businessId": "b1", "fileKey": "  "})
