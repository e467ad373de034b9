class TestSearch:
    def _seed_people(self, add_employee, tenant_id="acme"):
        return {
            "alexander": add_employee(
                tenant_id, "Alexander", "Johnson",
                title="Software Engineer", department="Engineering",
                skills=["Python", "JavaScript"],
            ),
            "maria": add_employee(
                tenant_id, "Maria", "Garcia",
                title="Product Manager", department="Product",
                skills=["Roadmaps"],
            ),
            "wei": add_employee(
                tenant_id, "Wei", "Chen",
                title="Data Scientist", department="Engineering",
                skills=["Python", "Statistics"],
            ),
        }

    def test_exact_name_search(self, client, add_employee, auth):
        ids = self._seed_people(add_employee)
        r = client.get("/api/v1/search?q=Maria", headers=auth())
        assert r.status_code == 200
        data = r.json()
        assert data["query"] == "Maria"
        assert data["total"] == 1
        result = data["results"][0]
        assert result["record"]["id"] == ids["maria"]
        assert result["matchType"] == "exact"
        assert result["matchedFields"][0] == "firstName"
        assert 0 < result["rank"] <= 1

    def test_misspelt_name_is_found_fuzzily(self, client, add_employee, auth):
        ids = self._seed_people(add_employee)
        r = client.get("/api/v1/search?q=Alexndr", headers=auth())
        assert r.status_code == 200
        data = r.json()
        assert data["total"] >= 1
        top = data["results"][0]
        assert top["record"]["id"] == ids["alexander"]
        assert top["matchType"] == "fuzzy"
        assert top["rank"] > 0
        assert "fuzzy" in data["meta"]["searchTypes"]

    def test_response_is_camel_case(self, client, add_employee, auth):
        self._seed_people(add_employee)
        data = client.get("/api/v1/search?q=Wei", headers=auth()).json()
        for key in ("pageSize", "hasMore", "executionTimeMs", "suggestions", "filters", "meta"):
            assert key in data
        record = data["results"][0]["record"]
        assert record["firstName"] == "Wei"
        assert record["tenantId"] == "acme"
        assert record["isActive"] is True

    def test_empty_query_returns_prompt(self, client, add_employee, auth):
        self._seed_people(add_employee)
        r = client.get("/api/v1/search?q=%20%20", headers=auth())
        assert r.status_code == 200
        data = r.json()
        assert data["results"] == []
        assert data["total"] == 0
        assert data["hasMore"] is False
        assert data["message"] == "Please enter a search term"

    def test_no_results_message(self, client, add_employee, auth):
        self._seed_people(add_employee)
        data = client.get("/api/v1/search?q=xyzqqwv", headers=auth()).json()
        assert data["total"] == 0
        assert data["results"] == []
        assert data["message"].startswith('No results found for "xyzqqwv"')

    def test_low_results_include_suggestions(self, client, add_employee, auth):
        self._seed_people(add_employee)
        data = client.get("/api/v1/search?q=Alexndr", headers=auth()).json()
        assert data["total"] < 3
        assert "Alexander" in data["suggestions"]

    def test_department_filter(self, client, add_employee, auth):
        ids = self._seed_people(add_employee)
        data = client.get("/api/v1/search?q=python&department=engineering", headers=auth()).json()
        found = {r["record"]["id"] for r in data["results"]}
        assert found == {ids["alexander"], ids["wei"]}
        assert data["filters"]["department"] == "engineering"

    def test_skills_filter_requires_every_skill(self, client, add_employee, auth):
        js_dev = add_employee(first_name="Sam", last_name="Lee", title="Developer", skills=["JavaScript", "React"])
        add_employee(first_name="Kim", last_name="Park", title="Developer", skills=["Python"])

        data = client.get("/api/v1/search?q=developer&skills=javascript", headers=auth()).json()
        assert [r["record"]["id"] for r in data["results"]] == [js_dev]

        data = client.get("/api/v1/search?q=developer&skills=JavaScript,Python", headers=auth()).json()
        assert data["total"] == 0

    def test_title_filter(self, client, add_employee, auth):
        ids = self._seed_people(add_employee)
        data = client.get("/api/v1/search?q=python&title=scientist", headers=auth()).json()
        assert [r["record"]["id"] for r in data["results"]] == [ids["wei"]]

    def test_tenant_isolation(self, client, add_employee, auth):
        ours = self._seed_people(add_employee, "acme")
        theirs = self._seed_people(add_employee, "globex")

        data = client.get("/api/v1/search?q=Maria", headers=auth("acme")).json()
        assert [r["record"]["id"] for r in data["results"]] == [ours["maria"]]
        assert all(r["record"]["tenantId"] == "acme" for r in data["results"])

        data = client.get("/api/v1/search?q=Maria", headers=auth("globex")).json()
        assert [r["record"]["id"] for r in data["results"]] == [theirs["maria"]]

    def test_inactive_records_hidden_by_default(self, client, add_employee, auth):
        add_employee(first_name="Olga", last_name="Former", is_active=False)
        data = client.get("/api/v1/search?q=Olga", headers=auth()).json()
        assert data["total"] == 0

    def test_include_inactive_requires_role(self, client, add_employee, auth):
        former = add_employee(first_name="Olga", last_name="Former", is_active=False)

        # Ordinary employees cannot widen the search
        data = client.get("/api/v1/search?q=Olga&includeInactive=true", headers=auth(role="employee")).json()
        assert data["total"] == 0
        assert data["filters"]["includeInactive"] is False

        for role in ("hr_admin", "admin"):
            data = client.get("/api/v1/search?q=Olga&includeInactive=true", headers=auth(role=role)).json()
            assert [r["record"]["id"] for r in data["results"]] == [former]
            assert data["results"][0]["record"]["isActive"] is False

    def test_second_identical_search_is_cached(self, client, add_employee, auth):
        self._seed_people(add_employee)
        h = auth()
        first = client.get("/api/v1/search?q=Engineering", headers=h).json()
        second = client.get("/api/v1/search?q=Engineering", headers=h).json()
        assert first["meta"]["cached"] is False
        assert second["meta"]["cached"] is True
        assert second["results"] == first["results"]
        assert second["total"] == first["total"]

    def test_cache_is_per_tenant(self, client, add_employee, auth):
        self._seed_people(add_employee, "acme")
        self._seed_people(add_employee, "globex")
        client.get("/api/v1/search?q=Maria", headers=auth("acme"))
        data = client.get("/api/v1/search?q=Maria", headers=auth("globex")).json()
        assert data["meta"]["cached"] is False
        assert data["results"][0]["record"]["tenantId"] == "globex"


class TestSearchPagination:
    def _seed_engineers(self, add_employee, count=7):
        ids = []
        for i in range(count):
            ids.append(add_employee(
                first_name=f"Person{i}", last_name=f"Engineer{i}",
                title="Engineer", updated_at=f"2024-01-{i + 1:02d}T00:00:00Z",
            ))
        return ids

    def test_pages_are_disjoint_and_complete(self, client, add_employee, auth):
        ids = self._seed_engineers(add_employee)
        h = auth()
        seen = []
        for page, has_more in ((1, True), (2, True), (3, False)):
            data = client.get(f"/api/v1/search?q=engineer&page={page}&pageSize=3", headers=h).json()
            assert data["total"] == 7
            assert data["page"] == page
            assert data["hasMore"] is has_more
            assert data["meta"]["resultCount"] == len(data["results"])
            seen.extend(r["record"]["id"] for r in data["results"])
        assert len(seen) == len(set(seen)) == 7
        assert set(seen) == set(ids)

    def test_equal_rank_breaks_ties_by_recency(self, client, add_employee, auth):
        ids = self._seed_engineers(add_employee, count=3)
        data = client.get("/api/v1/search?q=engineer", headers=auth()).json()
        assert [r["record"]["id"] for r in data["results"]] == list(reversed(ids))

    def test_page_beyond_results_is_empty(self, client, add_employee, auth):
        self._seed_engineers(add_employee, count=2)
        data = client.get("/api/v1/search?q=engineer&page=5", headers=auth()).json()
        assert data["results"] == []
        assert data["total"] == 2
        assert data["hasMore"] is False

    def test_oversized_page_size_is_clamped(self, client, add_employee, auth):
        self._seed_engineers(add_employee, count=2)
        data = client.get("/api/v1/search?q=engineer&pageSize=200", headers=auth()).json()
        assert data["pageSize"] == 100

    def test_page_zero_is_rejected(self, client, auth):
        r = client.get("/api/v1/search?q=engineer&page=0", headers=auth())
        assert r.status_code == 400
        error = r.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["field"] == "page"

    def test_overlong_query_is_rejected(self, client, auth):
        r = client.get("/api/v1/search", params={"q": "a" * 201}, headers=auth())
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_invalid_fuzzy_threshold_is_rejected(self, client, auth):
        r = client.get("/api/v1/search?q=engineer&fuzzyThreshold=1.5", headers=auth())
        assert r.status_code == 400
        assert r.json()["error"]["field"] == "fuzzyThreshold"


class TestTenantContext:
    def test_missing_token_is_rejected(self, client):
        r = client.get("/api/v1/search?q=anyone")
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "TENANT_CONTEXT_ERROR"

    def test_unknown_token_is_rejected(self, client):
        r = client.get("/api/v1/search?q=anyone", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "TENANT_CONTEXT_ERROR"

    def test_mismatched_tenant_header_is_rejected(self, client, auth):
        h = auth("acme")
        h["X-Tenant-ID"] = "globex"
        r = client.get("/api/v1/search?q=anyone", headers=h)
        assert r.status_code == 401

    def test_matching_tenant_header_is_accepted(self, client, auth):
        h = auth("acme")
        h["X-Tenant-ID"] = "acme"
        assert client.get("/api/v1/search?q=anyone", headers=h).status_code == 200

    def test_revoked_token_is_rejected(self, client, tenant_provider):
        token = tenant_provider.issue("acme")
        tenant_provider.revoke(token)
        r = client.get("/api/v1/search?q=anyone", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401

    def test_expired_token_is_rejected(self):
        from directory_search.services.tenant_context import TokenTenantContextProvider

        now = [1000.0]
        provider = TokenTenantContextProvider(ttl_seconds=60, clock=lambda: now[0])
        token = provider.issue("acme", role="admin")
        assert provider.resolve(token).tenant_id == "acme"
        now[0] += 61
        assert provider.resolve(token) is None


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
