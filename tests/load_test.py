import asyncio
import httpx
import time
import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

if not os.getenv("AUTH_SECRET"):
    print("❌ Error: AUTH_SECRET not found in .env file.")
    sys.exit(1)

from core.security import issue_token

TARGET_URL = "http://localhost:8000"
if len(sys.argv) > 1 and sys.argv[1].startswith("http"):
    TARGET_URL = sys.argv[1].rstrip("/")


async def simulate_user(client: httpx.AsyncClient, user_id: str, total_requests: int):
    """Simulate a single user repeatedly opening their dashboard data"""
    headers = {"Authorization": f"Bearer {issue_token(user_id)}"}

    success = 0
    fail = 0
    times = []

    for _ in range(total_requests):
        start = time.time()
        try:
            # History is what the dashboard loads on every visit
            resp = await client.get(f"{TARGET_URL}/api/history", headers=headers)
            if resp.status_code == 200:
                success += 1
            else:
                fail += 1
        except httpx.HTTPError:
            fail += 1

        times.append(time.time() - start)

    return success, fail, times


async def run_load_test(concurrent_users: int, requests_per_user: int):
    print(f"🚀 Starting Load Test on {TARGET_URL}")
    print(f"👥 Users: {concurrent_users}")
    print(f"🔄 Requests per user: {requests_per_user}")
    print(f"📨 Total requests: {concurrent_users * requests_per_user}")
    print("-" * 40)

    async with httpx.AsyncClient(timeout=10.0) as client:
        start_time = time.time()
        tasks = [
            simulate_user(client, f"load_user_{i}", requests_per_user)
            for i in range(concurrent_users)
        ]
        results = await asyncio.gather(*tasks)
        total_time = time.time() - start_time

    total_success = sum(r[0] for r in results)
    total_fail = sum(r[1] for r in results)
    all_times = [t for r in results for t in r[2]]
    avg_latency = (sum(all_times) / len(all_times)) * 1000 if all_times else 0

    print("-" * 40)
    print(f"✅ Test Completed in {total_time:.2f} seconds")
    print("📊 Results:")
    print(f"   Success: {total_success}")
    print(f"   Failed:  {total_fail}")
    print(f"   RPS (Req/sec): {len(all_times) / total_time:.2f}")
    print(f"   Avg Latency: {avg_latency:.2f} ms")


if __name__ == "__main__":
    # python tests/load_test.py [url] [users] [reqs]
    USERS = int(sys.argv[2]) if len(sys.argv) > 2 else 50
    REQS = int(sys.argv[3]) if len(sys.argv) > 3 else 20

    asyncio.run(run_load_test(USERS, REQS))
