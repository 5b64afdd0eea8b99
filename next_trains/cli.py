import os, sys, re, json, logging

import next_trains as nt


log = nt.u.get_logger('nt.main')


def main(args=None):
	conf = nt.BoardConf()

	import argparse
	parser = argparse.ArgumentParser(
		description='Next trains between two stations, from GTFS static feed.')
	parser.add_argument('-u', '--feed', metavar='url-or-path',
		help='URL or local path of GTFS zip archive.'
			' Default is $GTFS_URL env var or GO Transit feed: {}'.format(conf.feed_url.replace('%', '%%')))

	group = parser.add_argument_group('Board options')
	group.add_argument('-f', '--from', dest='station_src', metavar='name',
		help='Departure station name (case-insensitive substring'
			' of stop_name in stops.txt). Default: {!r}'.format(conf.station_src))
	group.add_argument('-t', '--to', dest='station_dst', metavar='name',
		help='Destination station name, same as --from. Default: {!r}'.format(conf.station_dst))
	group.add_argument('-n', '--results', type=int, metavar='n',
		help='Number of departures to list. Default: {}'.format(conf.results))
	group.add_argument('--tz', metavar='zone',
		help='Timezone name to use for service dates and current time.'
			' Default: {}'.format(conf.timezone))
	group.add_argument('--ttl', type=float, metavar='seconds',
		help='Max age of parsed feed data before re-fetching it.'
			' Only matters for long-running "serve" command. Default: {}'.format(conf.feed_ttl))
	group.add_argument('--timeout', type=float, metavar='seconds',
		help='Deadline for feed download. Default: {}'.format(conf.feed_timeout))
	group.add_argument('--conf', metavar='yaml-data',
		help='Override any BoardConf values as a YAML mapping.'
			' Example: {title: "Next trains", line_default: Train}')
	group.add_argument('--conf-file', metavar='path',
		help='Same as --conf, but read YAML mapping from specified file.')

	group = parser.add_argument_group('Misc/debug options')
	group.add_argument('--debug', action='store_true', help='Verbose operation mode.')

	cmds = parser.add_subparsers(title='Commands', dest='call')

	cmd = cmds.add_parser('query',
		help='Print next departures as JSON (default command).')
	cmd.add_argument('-d', '--date', metavar='YYYYMMDD',
		help='Service date to use instead of current one, as YYYYMMDD or YYYY-MM-DD.')
	cmd.add_argument('-a', '--at', metavar='HH:MM[:SS]',
		help='Time of day to list departures after, instead of current time.')

	cmd = cmds.add_parser('stations',
		help='List stops with names matching specified pattern, to pick --from/--to values.')
	cmd.add_argument('pattern', help='Case-insensitive substring to look for in stop names.')

	cmd = cmds.add_parser('serve',
		help='Run HTTP server with /departures and /health endpoints.')
	cmd.add_argument('--host', default='127.0.0.1', help='Default: %(default)s')
	cmd.add_argument('--port', type=int, default=8000, help='Default: %(default)s')
	cmd.add_argument('--prefetch', action='store_true',
		help='Fetch and parse feed before starting to accept connections.')

	opts = parser.parse_args(sys.argv[1:] if args is None else args)

	logging.basicConfig(
		format='%(asctime)s :: %(name)s %(levelname)s :: %(message)s',
		datefmt='%Y-%m-%d %H:%M:%S',
		level=logging.DEBUG if opts.debug else logging.WARNING )

	if os.environ.get('GTFS_URL'): conf.feed_url = os.environ['GTFS_URL']

	import yaml
	for conf_src in opts.conf_file, opts.conf:
		if not conf_src: continue
		try:
			if conf_src is opts.conf_file:
				with open(conf_src) as src: conf_src = src.read()
			conf.update(yaml.safe_load(conf_src) or dict())
		except KeyError as err: parser.error('Unrecognized conf option: {}'.format(err))
		except (OSError, yaml.YAMLError, AttributeError) as err:
			parser.error('Failed to parse conf as YAML mapping: {}'.format(err))

	for k_opt, k_conf in [ ('feed', 'feed_url'), ('station_src', 'station_src'),
			('station_dst', 'station_dst'), ('results', 'results'), ('tz', 'timezone'),
			('ttl', 'feed_ttl'), ('timeout', 'feed_timeout') ]:
		v = getattr(opts, k_opt)
		if v is not None: setattr(conf, k_conf, v)
	if not isinstance(conf.results, int) or conf.results < 0:
		parser.error('Number of departures must be a non-negative integer: {!r}'.format(conf.results))

	board_cache = nt.init_board(conf)

	if opts.call == 'stations':
		try:
			archive = board_cache.fetch()
			with archive.open_table('stops') as src:
				for stop in nt.gtfs.match_stops(nt.gtfs.iter_stops(src), opts.pattern):
					print('{}\t{}'.format(stop.id, stop.name))
		except nt.gtfs.FeedError as err: parser.exit(1, 'ERROR: {}\n'.format(err))

	elif opts.call == 'serve':
		import uvicorn
		from . import web
		if opts.prefetch: board_cache.ensure_fresh()
		uvicorn.run(web.create_app(board_cache, conf), host=opts.host, port=opts.port)

	elif opts.call in [None, 'query']:
		reading = board_cache.clock.now()
		date, at = getattr(opts, 'date', None), getattr(opts, 'at', None)
		if date:
			m = re.search(r'^\s*(\d{4})\s*-\s*(\d{2})\s*-\s*(\d{2})\s*$', date)
			if m: date = ''.join(m.groups())
			if not (date.isdigit() and len(date) == 8):
				parser.error('Failed to parse --date value: {!r}'.format(opts.date))
		if date or at:
			try: reading = nt.clock.ClockReading.from_values(date or reading.date, at or str(reading.dts))
			except ValueError as err: parser.error('Invalid --date/--at value: {}'.format(err))
			log.debug('Using clock override: {}', reading)
		board = nt.engine.departure_board(board_cache, conf, reading)
		print(json.dumps(board.data, ensure_ascii=False, indent=2))
		return 0 if board.ok else 1

	else: parser.error('Action not implemented: {}'.format(opts.call))

if __name__ == '__main__': sys.exit(main())
