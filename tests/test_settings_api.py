from billing.models import Setting
from billing.seed import seed_default_settings


def test_put_requires_admin(auth_client):
    response = auth_client.put("/api/settings/appSettings", json={"value": {}})
    assert response.status_code == 403
    assert response.get_json()["error"] == "Forbidden"


def test_admin_stores_and_render_settings_merge(admin_client):
    response = admin_client.put("/api/settings/appSettings", json={
        "value": {"company": {"name": "Stored Co"}, "invoice": {"fontSize": 14}},
        "description": "Document render settings",
    })
    assert response.status_code == 200
    assert response.get_json()["value"]["company"]["name"] == "Stored Co"

    render = admin_client.get("/api/settings/render").get_json()
    assert render["company_name"] == "Stored Co"
    assert render["font_size"] == 14
    assert render["company_email"] == "info@amkenterprise.com"

    assert admin_client.get("/api/settings").get_json()["appSettings"]["invoice"] == {"fontSize": 14}


def test_put_requires_value(admin_client):
    assert admin_client.put("/api/settings/theme", json={}).status_code == 400


def test_get_missing_key_is_null(auth_client):
    assert auth_client.get("/api/settings/nothing").get_json() == {"key": "nothing", "value": None}


def test_delete_setting(admin_client, db):
    admin_client.put("/api/settings/theme", json={"value": "dark"})
    assert admin_client.delete("/api/settings/theme").status_code == 200
    assert Setting.query.filter_by(key="theme").first() is None
    assert admin_client.delete("/api/settings/theme").status_code == 404


def test_seed_keeps_saved_values(app, db):
    stored = Setting(key="appSettings")
    stored.data = {"company": {"name": "Kept Co"}}
    db.session.add(stored)
    db.session.commit()

    merged = seed_default_settings()
    assert merged["company"]["name"] == "Kept Co"
    assert merged["company"]["email"] == "info@amkenterprise.com"
    assert merged["invoice"]["fontSize"] == 11

    seed_default_settings()
    assert Setting.query.filter_by(key="appSettings").count() == 1
