"""Small GPX and TCX documents shared by the parser tests."""

THREE_POINT_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <name>Morning Run</name>
    <type>running</type>
    <trkseg>
      <trkpt lat="45.0000" lon="7.0000"><ele>250.0</ele><time>2024-05-01T08:00:00Z</time></trkpt>
      <trkpt lat="45.0010" lon="7.0000"><ele>251.0</ele><time>2024-05-01T08:00:10Z</time></trkpt>
      <trkpt lat="45.0020" lon="7.0000"><ele>252.5</ele><time>2024-05-01T08:00:20Z</time></trkpt>
    </trkseg>
  </trk>
</gpx>
"""

EXTENSIONS_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test"
     xmlns="http://www.topografix.com/GPX/1/1"
     xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1"
     xmlns:pwr="http://www.garmin.com/xmlschemas/PowerExtension/v1">
  <trk><trkseg>
    <trkpt lat="45.0" lon="7.0">
      <time>2024-05-01T08:00:00Z</time>
      <extensions>
        <pwr:PowerInWatts>210</pwr:PowerInWatts>
        <gpxtpx:TrackPointExtension>
          <gpxtpx:hr>142</gpxtpx:hr>
          <gpxtpx:cad>88</gpxtpx:cad>
          <gpxtpx:atemp>21.5</gpxtpx:atemp>
        </gpxtpx:TrackPointExtension>
      </extensions>
    </trkpt>
    <trkpt lat="45.0001" lon="7.0">
      <time>2024-05-01T08:00:01Z</time>
    </trkpt>
  </trkseg></trk>
</gpx>
"""

TCX = """<?xml version="1.0" encoding="UTF-8"?>
<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
    xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2">
  <Activities>
    <Activity Sport="Biking">
      <Id>2024-05-01T08:00:00Z</Id>
      <Lap StartTime="2024-05-01T08:00:00Z">
        <TotalTimeSeconds>2.0</TotalTimeSeconds>
        <DistanceMeters>12.0</DistanceMeters>
        <Calories>15</Calories>
        <AverageHeartRateBpm><Value>131</Value></AverageHeartRateBpm>
        <Intensity>Active</Intensity>
        <TriggerMethod>Manual</TriggerMethod>
        <Track>
          <Trackpoint>
            <Time>2024-05-01T08:00:00Z</Time>
            <Position><LatitudeDegrees>45.0</LatitudeDegrees><LongitudeDegrees>7.0</LongitudeDegrees></Position>
            <AltitudeMeters>250</AltitudeMeters>
            <DistanceMeters>0.0</DistanceMeters>
            <HeartRateBpm><Value>130</Value></HeartRateBpm>
            <Cadence>85</Cadence>
            <Extensions><ns3:TPX><ns3:Speed>6.0</ns3:Speed><ns3:Watts>200</ns3:Watts></ns3:TPX></Extensions>
          </Trackpoint>
          <Trackpoint>
            <Time>2024-05-01T08:00:01Z</Time>
            <DistanceMeters>6.0</DistanceMeters>
            <HeartRateBpm><Value>132</Value></HeartRateBpm>
          </Trackpoint>
        </Track>
      </Lap>
      <Lap StartTime="2024-05-01T08:00:02Z">
        <Calories>5</Calories>
        <Track>
          <Trackpoint>
            <Time>2024-05-01T08:00:02Z</Time>
            <DistanceMeters>12.0</DistanceMeters>
          </Trackpoint>
        </Track>
      </Lap>
    </Activity>
  </Activities>
</TrainingCenterDatabase>
"""
