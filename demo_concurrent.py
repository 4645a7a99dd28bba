import asyncio

import httpx

from sdk.pyhub import HubClient

SPOTS = {
    "Praça da Sé": (-23.5503, -46.6339),
    "Campinas": (-22.9099, -47.0626),
    "Copacabana": (-22.9711, -43.1822),
    "Belo Horizonte": (-19.9167, -43.9345),
}


async def lookup(client, label, lat, lng, radius):
    try:
        found = await client.nearby_async(lat, lng, radius)
        names = ", ".join(f"{d['name']} ({d['distance']})" for d in found) or "none"
        print(f"📍 {label}: {len(found)} within {radius}km -> {names}")
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 422:
            print(f"❌ {label}: invalid coordinates or radius")
        else:
            print(f"❌ {label}: lookup failed with error: {e}")
    except httpx.HTTPError as e:
        print(f"❌ {label}: server unreachable: {e}")


async def main():
    c = HubClient(base_url="http://127.0.0.1:8085")

    # Reset store if available
    try:
        c.reset()
    except Exception:
        pass

    c.register("Demo", "demo@example.com", "s3cret-pass")
    c.login("demo@example.com", "s3cret-pass")
    for name, cidade, estado, (lat, lng) in [
        ("Casa do Café Paulista", "São Paulo", "SP", (-23.5614, -46.6559)),
        ("Empório Campinas", "Campinas", "SP", (-22.9056, -47.0608)),
        ("Rio Grãos", "Rio de Janeiro", "RJ", (-22.9035, -43.1780)),
    ]:
        c.create_distributor(name, cidade=cidade, estado=estado, latitude=lat, longitude=lng)

    # Run concurrent lookups
    print("\n⚡ Running concurrent nearby lookups...")
    await asyncio.gather(*(lookup(c, label, lat, lng, 150) for label, (lat, lng) in SPOTS.items()))

    print("\n🏪 All distributors:", [d["name"] for d in c.list_distributors()])


if __name__ == "__main__":
    asyncio.run(main())
