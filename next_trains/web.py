from fastapi import FastAPI
from fastapi.responses import JSONResponse

from . import engine


# Board changes once a minute at most, and feed refresh can take a while
cache_control = 's-maxage=60, stale-while-revalidate=300'


def create_app(cache, conf):
	'FastAPI app serving departure board from FeedCache.'
	app = FastAPI(title=conf.title)

	@app.get('/departures')
	def departures():
		# Sync handler - runs in threadpool, FeedCache does single-flight refresh
		board = engine.departure_board(cache, conf)
		return JSONResponse( board.data,
			status_code=200 if board.ok else 500,
			headers={'Cache-Control': cache_control} )

	@app.get('/health')
	def health():
		snapshot = cache.snapshot
		if not snapshot: return dict(status='ok', snapshot=None)
		return dict(status='ok', snapshot=dict(
			service_date=snapshot.service_date,
			age=round(cache.age(snapshot), 1),
			trips=len(snapshot.trips),
			stop_src=snapshot.stop_src.id,
			stop_dst=snapshot.stop_dst.id ))

	return app
