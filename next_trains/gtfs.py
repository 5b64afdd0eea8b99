from collections import namedtuple
import io, csv

from . import utils as u, types as t


log = u.get_logger('nt.gtfs')


class FeedError(Exception): pass

class FeedTableMissing(FeedError):
	def __init__(self, table):
		super(FeedTableMissing, self).__init__(
			'Missing required GTFS table in feed archive: {}.txt'.format(table) )
		self.table = table

class FeedTableColumnsMissing(FeedError):
	def __init__(self, table, columns):
		super(FeedTableColumnsMissing, self).__init__(
			'Missing required column(s) in {}.txt: {}'.format(table, ', '.join(columns)) )
		self.table, self.columns = table, columns

class FeedStopNotFound(FeedError):
	def __init__(self, query):
		super(FeedStopNotFound, self).__init__(
			'Could not find stop_id for {!r} in GTFS stops.txt'.format(query) )
		self.query = query


weekday_columns = [ 'monday', 'tuesday',
	'wednesday', 'thursday', 'friday', 'saturday', 'sunday' ]

stop_times_columns = [ 'trip_id',
	'arrival_time', 'departure_time', 'stop_id', 'stop_sequence' ]


### Table parser

def read_table_header(src_csv, table, required=()):
	'Return list of column names, or None for empty table without a header line.'
	try: fields = list(v.strip() for v in next(src_csv))
	except StopIteration: return
	if fields: fields[0] = fields[0].lstrip('\ufeff')
	missing = list(k for k in required if k not in fields)
	if missing: raise FeedTableColumnsMissing(table, missing)
	return fields

def iter_table_tuples(lines, table, required=(), optional=()):
	'''Yield namedtuple for each row of csv table from iterable of text lines.
		Quoted fields can contain commas and ""-escaped quotes.
		Rows with field count that does not match header are skipped.
		Columns from "optional" list are always present, empty if missing in the table.'''
	src_csv = csv.reader(lines)
	fields = read_table_header(src_csv, table, required)
	if fields is None: return
	fields_extra = list(k for k in optional if k not in fields)
	tuple_t = ''.join(' '.join(table.rstrip('s').split('_')).title().split()) or 'Row'
	tuple_t = namedtuple(tuple_t, fields + fields_extra, rename=True)
	tuple_t._columns = tuple(fields + fields_extra) # names before rename of non-identifiers
	n, pad = len(fields), ('',) * len(fields_extra)
	for line in src_csv:
		if len(line) != n:
			if line: log.debug('Skipping bogus CSV line (table: {}): {!r}', table, line)
			continue
		yield tuple_t(*line, *pad)

def parse_table(text, table='table', required=(), optional=()):
	'Parse csv table text into a list of {column: value} mappings, in table order.'
	rows = iter_table_tuples(io.StringIO(text), table, required, optional)
	return list(dict(zip(row._columns, row)) for row in rows)


### Table records

def is_gtfs_date(date_str):
	return len(date_str) == 8 and date_str.isdigit()

def iter_stops(lines):
	for s in iter_table_tuples(lines, 'stops', ['stop_id', 'stop_name']):
		yield t.Stop(s.stop_id, s.stop_name)

def iter_routes(lines):
	for s in iter_table_tuples( lines, 'routes',
			['route_id'], ['route_short_name', 'route_long_name'] ):
		yield t.Route(s.route_id, s.route_short_name.strip(), s.route_long_name.strip())

def iter_trips(lines):
	for s in iter_table_tuples( lines, 'trips',
			['trip_id', 'service_id', 'route_id'], ['trip_headsign'] ):
		yield t.Trip(s.trip_id, s.service_id, s.trip_headsign.strip(), s.route_id)

def iter_calendar(lines):
	for s in iter_table_tuples( lines, 'calendar',
			['service_id', 'start_date', 'end_date'] + weekday_columns ):
		try:
			weekdays = tuple(int(getattr(s, k)) == 1 for k in weekday_columns)
			if not (is_gtfs_date(s.start_date) and is_gtfs_date(s.end_date)): raise ValueError
		except ValueError:
			log.debug('Skipping invalid calendar entry: {}', s)
			continue
		yield t.CalendarRule(s.service_id, s.start_date, s.end_date, weekdays)

def iter_calendar_dates(lines):
	for s in iter_table_tuples(lines, 'calendar_dates', ['service_id', 'date', 'exception_type']):
		try:
			exc = t.CalendarException(s.exception_type.strip())
			if not is_gtfs_date(s.date): raise ValueError
		except ValueError:
			log.debug('Skipping invalid calendar_dates entry: {}', s)
			continue
		yield t.CalendarDate(s.service_id, s.date, exc)


### Service calendar

def resolve_active_services(rules, exceptions, date_str, weekday):
	'''Return frozenset of service_id values operating on specified date.
		weekday: 0 = monday ... 6 = sunday, same as datetime.date.weekday().
		calendar_dates exceptions are applied in table order,
			so with conflicting entries for same service/date, last one wins.'''
	services = set()
	for rule in rules:
		if rule.active_on(date_str, weekday): services.add(rule.service_id)
	for exc in exceptions:
		if exc.date != date_str: continue
		if exc.exception == t.CalendarException.added: services.add(exc.service_id)
		elif exc.exception == t.CalendarException.removed: services.discard(exc.service_id)
	return frozenset(services)


### Stop-time index

def stop_time_side(ts, seq):
	return t.StopTimeSide(ts, u.dts_parse(ts), seq)

def index_stop_times(lines, stop_src, stop_dst):
	'''Build {trip_id: StopTimeEntry} index for trips stopping at stop_src and/or stop_dst.
		Single pass over stop_times rows, which do not have to be grouped by trip,
			and only rows for these two stops are ever kept in memory.'''
	src_csv = csv.reader(lines)
	fields = read_table_header(src_csv, 'stop_times', stop_times_columns)
	if fields is None: return dict()
	n, (i_trip, i_arr, i_dep, i_stop, i_seq) = len(fields), map(fields.index, stop_times_columns)

	index, skipped = dict(), 0
	for line in src_csv:
		if len(line) != n: continue
		stop_id = line[i_stop]
		if stop_id != stop_src and stop_id != stop_dst: continue
		ts_arr, ts_dep = line[i_arr].strip(), line[i_dep].strip()
		try:
			seq = int(line[i_seq])
			# Only time for the side being recorded is parsed, other one is a fallback if omitted
			side_src = stop_id == stop_src and stop_time_side(ts_dep or ts_arr, seq)
			side_dst = stop_id == stop_dst and stop_time_side(ts_arr or ts_dep, seq)
		except ValueError:
			skipped += 1
			continue
		entry = index.get(line[i_trip])
		if entry is None: entry = index[line[i_trip]] = t.StopTimeEntry()
		if side_src: entry.src = side_src
		if side_dst: entry.dst = side_dst

	if skipped: log.debug('Skipped {:,} stop_times rows with invalid times/sequence', skipped)
	return index


### Snapshot

def match_stops(stops, query):
	query = query.lower()
	for stop in stops:
		if stop.name and query in stop.name.lower(): yield stop

def find_stops(stops, queries):
	'''Return list with first stop matching each name query (case-insensitive substring).
		Raises FeedStopNotFound for first query without a match.'''
	queries, found = list(q.lower() for q in queries), [None] * len(queries)
	for stop in stops:
		name = stop.name.lower()
		for n, q in enumerate(queries):
			if found[n] is None and q in name: found[n] = stop
		if all(found): break
	for q, stop in zip(queries, found):
		if not stop: raise FeedStopNotFound(q)
	return found

def build_snapshot(archive, conf, reading, fetched_at=None):
	'''Parse feed archive into a Snapshot for specified
		stations (from conf) and service date (from clock reading).'''
	archive.require('stops', 'trips', 'stop_times')

	with archive.open_table('stops') as src:
		stop_src, stop_dst = find_stops(iter_stops(src), [conf.station_src, conf.station_dst])
	log.debug('Using stops: {} -> {}', stop_src, stop_dst)

	with archive.open_table('stop_times') as src:
		stop_times = u.calc_timer(index_stop_times, src, stop_src.id, stop_dst.id)

	with archive.open_table('trips') as src:
		trips = dict((trip.id, trip) for trip in iter_trips(src) if trip.id in stop_times)

	with archive.open_table('routes', optional=True) as src:
		routes = dict((route.id, route) for route in iter_routes(src))

	with archive.open_table('calendar', optional=True) as src: rules = list(iter_calendar(src))
	with archive.open_table('calendar_dates', optional=True) as src:
		services = resolve_active_services(
			rules, iter_calendar_dates(src), reading.date, reading.weekday )
	if not services:
		log.info('No services were found to be operational on {}', reading.date)

	log.debug(
		'Parsed feed: trips={:,} (indexed={:,}), routes={:,},'
			' calendar-rules={:,}, services[{}]={:,}',
		len(trips), len(stop_times), len(routes), len(rules), reading.date, len(services) )
	return t.Snapshot( stop_src, stop_dst, routes,
		trips, services, stop_times, reading.date, fetched_at )
