import io
import pandas as pd
import pytest


@pytest.fixture
def client():
    from web_app import app

    app.config["TESTING"] = True
    return app.test_client()


def test_screen_renders_current_state(client):
    resp = client.get("/?amount=50.00&tip_percent=15&round_up=on")

    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Tip Percentage: 15%" in body
    assert "$8.00" in body
    assert 'value="50.00"' in body


def test_screen_post_recalculates(client):
    resp = client.post("/", data={"amount": "33.33", "tip_percent": "20"})

    assert resp.status_code == 200
    assert "$6.67" in resp.get_data(as_text=True)


def test_fresh_screen_defaults(client):
    resp = client.get("/api/tip")

    assert resp.get_json() == {"amount": "", "tip_percent": 15.0, "round_up": False, "tip": "$0.00"}


@pytest.mark.parametrize(
    "query,tip",
    [
        ("amount=50.00&tip_percent=15", "$7.50"),
        ("amount=50.00&tip_percent=15&round_up=on", "$8.00"),
        ("amount=&tip_percent=20", "$0.00"),
        ("amount=33.33&tip_percent=20&round_up=true", "$7.00"),
        ("amount=abc&tip_percent=30", "$0.00"),
    ],
)
def test_api_tip(client, query, tip):
    resp = client.get(f"/api/tip?{query}")

    assert resp.status_code == 200
    assert resp.get_json()["tip"] == tip


def test_api_tip_huge_amount(client):
    resp = client.get("/api/tip?amount=1" + "0" * 30 + "&tip_percent=15")

    assert resp.status_code == 200
    assert resp.get_json()["tip"] == "$150" + ",000" * 9 + ".00"

    resp = client.get("/api/tip?amount=1" + "0" * 400 + "&tip_percent=15")
    assert resp.get_json()["tip"] == "$0.00"


def test_api_tip_clamps_and_ignores_bad_percent(client):
    assert client.get("/api/tip?amount=10&tip_percent=45").get_json()["tip_percent"] == 30.0
    assert client.get("/api/tip?amount=10&tip_percent=lots").get_json()["tip_percent"] == 15.0


def test_table_export_returns_excel(client):
    resp = client.get("/table.xlsx?amount=50")

    assert resp.status_code == 200
    assert "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet" in resp.content_type

    out_df = pd.read_excel(io.BytesIO(resp.data), sheet_name="Tip Table")
    assert len(out_df) == 7
    assert out_df["Tip Amount"].tolist() == [0.0, 2.5, 5.0, 7.5, 10.0, 12.5, 15.0]


def test_batch_upload_returns_excel(client):
    csv_bytes = pd.DataFrame({"Guest": ["Ann", "Bo"], "Bill": [40.0, 19.99]}).to_csv(index=False).encode()

    data = {
        "tip_percent": "25",
        "round_up": "on",
        "file": (io.BytesIO(csv_bytes), "bills.csv"),
    }
    resp = client.post("/batch", data=data, content_type="multipart/form-data")

    assert resp.status_code == 200
    out_df = pd.read_excel(io.BytesIO(resp.data), sheet_name="Tips")
    assert out_df["Guest"].tolist() == ["Ann", "Bo"]
    # 19.99 * 25% = 4.9975 -> 5
    assert out_df["Tip Amount"].tolist() == [10.0, 5.0]


def test_batch_rejects_unsupported_file(client):
    data = {"tip_percent": "15", "file": (io.BytesIO(b"x"), "bills.txt")}
    resp = client.post("/batch", data=data, content_type="multipart/form-data")

    assert resp.status_code == 400
    assert "Unsupported file type" in resp.get_data(as_text=True)


def test_batch_reports_missing_amount_column(client):
    csv_bytes = b"Guest\nAnn\n"
    data = {"tip_percent": "15", "file": (io.BytesIO(csv_bytes), "bills.csv")}
    resp = client.post("/batch", data=data, content_type="multipart/form-data")

    assert resp.status_code == 400
    assert "Error processing file" in resp.get_data(as_text=True)


def test_health_and_ready(client):
    assert client.get("/health").get_json() == {"status": "ok"}
    assert client.get("/ready").get_json() == {"ready": True}
