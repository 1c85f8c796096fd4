import pytest

from app.models.customer import Customer, InternalNote
from app.services.query_cache import conversation_list_key, get_query_cache


@pytest.fixture()
def as_agent(auth_as, agent):
    return auth_as(agent)


class TestCustomers:
    def test_create_in_callers_company(self, client, as_agent):
        response = client.post(
            "/api/customers",
            json={"name": "Tom Baker", "phone": "+15557770000", "is_vip": True},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["company_id"] == as_agent.company_id
        assert body["is_vip"] is True

    def test_missing_name_is_422(self, client, as_agent):
        response = client.post("/api/customers", json={"phone": "+1555"})
        assert response.status_code == 422
        assert isinstance(response.json()["detail"], list)

    def test_search_matches_name_email_or_phone_case_insensitively(self, client, as_agent, db_session, company):
        db_session.add_all(
            [
                Customer(name="Alice Smith", email="alice@example.com", company_id=company.id),
                Customer(name="Bob Jones", phone="+4412345", company_id=company.id),
                Customer(name="Carol", email="c@SMITHS.io", company_id=company.id),
            ]
        )
        db_session.commit()

        by_name = {row["name"] for row in client.get("/api/customers", params={"search": "smith"}).json()}
        by_phone = {row["name"] for row in client.get("/api/customers", params={"search": "4412"}).json()}

        assert by_name == {"Alice Smith", "Carol"}
        assert by_phone == {"Bob Jones"}

    def test_list_excludes_other_companies(self, client, as_agent, db_session, customer, other_company):
        db_session.add(Customer(name="Foreign", company_id=other_company.id))
        db_session.commit()

        names = [row["name"] for row in client.get("/api/customers").json()]

        assert names == ["Maria Lopez"]

    def test_foreign_customer_is_404(self, client, as_agent, db_session, other_company):
        foreign = Customer(name="Foreign", company_id=other_company.id)
        db_session.add(foreign)
        db_session.commit()

        assert client.get(f"/api/customers/{foreign.id}").status_code == 404
        assert client.put(f"/api/customers/{foreign.id}", json={"name": "x"}).status_code == 404

    def test_update_is_partial_and_invalidates_conversation_list(self, client, as_agent, customer):
        assert client.get("/api/conversations").status_code == 200
        assert conversation_list_key(customer.company_id) in get_query_cache().keys()

        response = client.put(f"/api/customers/{customer.id}", json={"is_vip": True})

        assert response.status_code == 200
        body = response.json()
        assert body["is_vip"] is True
        assert body["name"] == "Maria Lopez"
        assert conversation_list_key(customer.company_id) not in get_query_cache().keys()


class TestInternalNotes:
    def test_create_and_list_newest_first_with_author_label(self, client, as_agent, customer):
        first = client.post("/api/internal-notes", json={"customer_id": customer.id, "content": "Prefers email"})
        second = client.post("/api/internal-notes", json={"customer_id": customer.id, "content": "VIP since 2024"})

        assert first.status_code == 201
        assert first.json()["created_by_name"] == "Jane D."
        assert second.status_code == 201

        notes = client.get(f"/api/customers/{customer.id}/notes").json()

        assert [note["content"] for note in notes] == ["VIP since 2024", "Prefers email"]
        assert all(note["created_by"] == as_agent.id for note in notes)

    def test_note_on_foreign_customer_is_404(self, client, as_agent, db_session, other_company):
        foreign = Customer(name="Foreign", company_id=other_company.id)
        db_session.add(foreign)
        db_session.commit()

        response = client.post("/api/internal-notes", json={"customer_id": foreign.id, "content": "x"})

        assert response.status_code == 404
        assert db_session.query(InternalNote).count() == 0


class TestTemplates:
    def test_list_returns_active_templates_by_title(self, client, as_agent):
        for title in ("Shipping delay", "Apology", "Refund policy"):
            assert client.post("/api/templates", json={"title": title, "content": f"{title} text"}).status_code == 201

        titles = [row["title"] for row in client.get("/api/templates").json()]

        assert titles == ["Apology", "Refund policy", "Shipping delay"]

    def test_delete_is_soft(self, client, as_agent, db_session):
        created = client.post("/api/templates", json={"title": "Greeting", "content": "Hi!"}).json()

        response = client.delete(f"/api/templates/{created['id']}")

        assert response.status_code == 204
        assert client.get("/api/templates").json() == []
        from app.models.template import Template

        stored = db_session.get(Template, created["id"])
        db_session.refresh(stored)
        assert stored.is_active is False

    def test_update_template(self, client, as_agent):
        created = client.post("/api/templates", json={"title": "Greeting", "content": "Hi!"}).json()

        response = client.put(f"/api/templates/{created['id']}", json={"content": "Hello there!"})

        assert response.status_code == 200
        assert response.json()["content"] == "Hello there!"
        assert response.json()["created_by"] == as_agent.id

    def test_foreign_template_is_404(self, client, as_agent, db_session, other_company):
        from app.models.template import Template

        foreign = Template(company_id=other_company.id, title="Theirs", content="...")
        db_session.add(foreign)
        db_session.commit()

        assert client.put(f"/api/templates/{foreign.id}", json={"title": "Mine"}).status_code == 404
        assert client.delete(f"/api/templates/{foreign.id}").status_code == 404
