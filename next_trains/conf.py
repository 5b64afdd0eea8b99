from . import utils as u


@u.attr_struct(vals_to_attrs=True)
class BoardConf:

	# Static GTFS zip to build departure board from, can also be a local path
	feed_url = ( 'https://assets.metrolinx.com/raw/upload/'
		'Documents/Metrolinx/Open%20Data/GO-GTFS.zip' )
	feed_ttl = 6 * 3600 # max age of parsed feed snapshot, in seconds
	feed_timeout = 120 # for the whole download, not just connect/read steps

	# Stations are picked by first case-insensitive substring match in stops.txt
	station_src = 'bloor'
	station_dst = 'union station'

	# Service dates and "now" are evaluated in this timezone
	timezone = 'America/Toronto'

	results = 3
	title = 'GO Train: Bloor → Union'
	line_default = 'GO' # when route has neither short nor long name
	headsign_default = 'Union Station'

	def update(self, values):
		'Set attributes from a mapping, raising KeyError on unknown keys.'
		for k, v in values.items():
			if k not in attr_names(self): raise KeyError(k)
			setattr(self, k, v)
		return self

def attr_names(conf):
	return set(a.name for a in u.attr.fields(conf.__class__))
