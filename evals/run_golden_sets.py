import asyncio, yaml, httpx, time, json, os
from datetime import datetime

BASE = os.getenv("REALTY_TOOLS_URL", "http://localhost:8000")
GOLDEN_FILE = os.path.join(os.path.dirname(__file__), "golden_sets.yaml")
RESULTS_FILE = os.path.join(os.path.dirname(__file__), "golden_results.json")


def _lookup(data, path):
    """Follows a dotted path ('areas.0.name') through dicts and lists."""
    for part in path.split('.'):
        if isinstance(data, list):
            data = data[int(part)] if part.isdigit() and int(part) < len(data) else None
        elif isinstance(data, dict):
            data = data.get(part)
        else:
            return None
    return data


async def run_check(client, case):
    start = time.time()
    try:
        resp = await client.post(f"{BASE}/tools/{case['tool']}",
            json=case.get('arguments', {}),
            timeout=30.0)
        data = resp.json()
        elapsed = time.time() - start

        summary = (data.get('summary_text') or '').lower()
        result = data.get('result') or {}
        failures = []

        # Check 1: success flag / error code
        expected_success = case.get('expect_success', True)
        if data.get('success') is not expected_success:
            failures.append(f"SUCCESS: expected {expected_success}, got {data.get('success')}")
        code = case.get('expect_error_code')
        if code and (data.get('error') or {}).get('code') != code:
            failures.append(f"ERROR CODE: expected {code}, got {data.get('error')}")

        # Check 2: summary content
        for phrase in case.get('must_contain', []):
            if phrase.lower() not in summary:
                failures.append(f"CONTENT: Missing required phrase '{phrase}'")
        for phrase in case.get('must_not_contain', []):
            if phrase.lower() in summary:
                failures.append(f"NEGATIVE: Contains forbidden phrase '{phrase}'")

        # Check 3: exact payload values
        for path, expected in (case.get('expect') or {}).items():
            actual = _lookup(result, path)
            if actual != expected:
                failures.append(f"PAYLOAD: {path} expected {expected!r}, got {actual!r}")

        # Check 4: list size bounds
        for path, bound in (case.get('max_len') or {}).items():
            items = _lookup(result, path) or []
            if len(items) > bound:
                failures.append(f"CAP: {path} has {len(items)} items, max {bound}")

        # Check 5: latency (provider timeout is 10s; fallback may add a second pass)
        limit = case.get('latency_limit', 25.0)
        if elapsed > limit:
            failures.append(f"LATENCY: {elapsed:.1f}s exceeded {limit}s")

        return {
            'id': case['id'],
            'tool': case['tool'],
            'category': case.get('category', ''),
            'passed': len(failures) == 0,
            'latency': round(elapsed, 2),
            'using_mock_data': result.get('using_mock_data'),
            'failures': failures,
        }

    except Exception as e:
        return {
            'id': case['id'],
            'tool': case.get('tool', ''),
            'passed': False,
            'failures': [f"EXCEPTION: {str(e)}"],
            'latency': 0,
        }


async def main():
    with open(GOLDEN_FILE) as f:
        golden = yaml.safe_load(f)

    print("=" * 60)
    print("REALTY TOOLS — GOLDEN SETS")
    print("=" * 60)

    async with httpx.AsyncClient() as client:
        health = (await client.get(f"{BASE}/health", timeout=5.0)).json()
        print(f"Provider: {health.get('provider')} ({health.get('mode')})\n")

        results = []
        for case in golden:
            r = await run_check(client, case)
            results.append(r)
            status = "✅ PASS" if r['passed'] else "❌ FAIL"
            print(f"{status} | {r['id']} | {r.get('latency', 0):.1f}s | mock: {r.get('using_mock_data')}")
            if not r['passed']:
                for f in r['failures']:
                    print(f"       → {f}")

    passed = sum(r['passed'] for r in results)
    print(f"\nGOLDEN SETS: {passed}/{len(results)} passed")

    by_category = {}
    for r in results:
        by_category.setdefault(r.get('category', ''), []).append(r['passed'])
    for cat, outcomes in sorted(by_category.items()):
        print(f"  {cat:20}: {sum(outcomes)}/{len(outcomes)}")

    with open(RESULTS_FILE, 'w') as f:
        json.dump({
            'timestamp': datetime.utcnow().isoformat(),
            'provider_mode': health.get('mode'),
            'golden_sets': results,
            'summary': {'golden_pass_rate': f"{passed}/{len(results)}"},
        }, f, indent=2)
    print(f"\nResults → {RESULTS_FILE}")


if __name__ == "__main__":
    asyncio.run(main())
