import operator as op

from . import utils as u, types as t
from .conf import BoardConf


log = u.get_logger('nt.engine')


def iter_departures(snapshot, dts_now, conf):
	'Yield unsorted Departures from snapshot that are not earlier than dts_now.'
	for trip_id, st in snapshot.stop_times.items():
		if not st.complete: continue
		if not st.src.seq < st.dst.seq: continue # opposite direction
		trip = snapshot.trips.get(trip_id)
		if not trip or trip.service_id not in snapshot.services: continue
		if st.src.dts < dts_now: continue
		route = snapshot.routes.get(trip.route_id)
		yield t.Departure(
			u.dts_format(st.src.dts), u.dts_format(st.dst.dts),
			(route and route.display_name) or conf.line_default,
			trip.headsign or conf.headsign_default, st.src.dts )

def query_departures(snapshot, dts_now, limit=3, conf=None):
	'''Return list of up to "limit" next Departures from stop_src
			to stop_dst of the snapshot, ordered by departure time.
		dts_now is seconds since midnight, trips with >24h times on the
			service date are compared to it as-is, without wrapping these times.'''
	departures = sorted(
		iter_departures(snapshot, dts_now, conf or BoardConf()),
		key=op.attrgetter('dts_dep') )
	return departures[:limit]


def departure_board(cache, conf, reading=None):
	'''Build BoardResult with next departures for current time, refreshing feed if needed.
		All errors are reported in the result, with ok=False.'''
	try:
		if reading is None: reading = cache.clock.now()
		snapshot = cache.ensure_fresh(reading)
		departures = query_departures(snapshot, reading.dts, conf.results, conf)
	except Exception as err:
		log.exception('Failed to build departure board: [{}] {}', err.__class__.__name__, err)
		return t.BoardResult(False, dict( title=conf.title,
			updated=None, departures=list(), error=str(err) or err.__class__.__name__ ))
	return t.BoardResult(True, dict( title=conf.title,
		updated=reading.hhmm, departures=list(d.as_dict() for d in departures) ))
